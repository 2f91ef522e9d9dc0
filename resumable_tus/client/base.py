"""TUS protocol client implementation."""

import logging
import os
from datetime import datetime, timezone
from typing import IO, Callable, Optional, Union

from resumable_tus.client.transport import TusTransport
from resumable_tus.exceptions import (
    FingerprintNotFoundError,
    ResumingNotEnabledError,
    TusCommunicationError,
)
from resumable_tus.fingerprint import Fingerprint
from resumable_tus.models import UploadInfo
from resumable_tus.url_storage import MemoryURLStorage, URLStorage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class TusClient:
    """TUS protocol client for uploading files.

    This client implements TUS protocol version 1.0.0 as specified at:
    https://tus.io/protocols/resumable-upload.html

    Version Handling:
        - Uses TUS version 1.0.0
        - Sends "Tus-Resumable: 1.0.0" header with all requests
        - Server must support version 1.0.0 to accept uploads

    Features:
        - File upload with configurable chunk size
        - Resume of interrupted uploads by file fingerprint
        - Progress reporting as a fraction between 0 and 1
        - Metadata support for file information

    Chunks are sent strictly one after another: each chunk starts at the
    offset the server reported for the previous one.

    Example:
        >>> with TusClient("http://localhost:8080") as client:
        ...     client.enable_resuming(FileURLStorage(".tus_urls.json"))
        ...     info = client.resume_or_create_upload("large_file.bin")
        ...     print(info.upload_url, info.offset)
    """

    def __init__(
        self,
        base_url: str,
        chunk_size: Union[int, float] = 1024 * 1024,
        creation_path: str = "files",
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        verify_tls_cert: bool = True,
        checksum: bool = False,
        metadata_encoding: str = "utf-8",
        fingerprinter: Optional[Fingerprint] = None,
        transport: Optional[TusTransport] = None,
    ):
        """Initialize TUS client.

        Args:
            base_url: Base URL of TUS server; uploads are created at {base_url}/files
            chunk_size: Size of upload chunks in bytes (default: 1MB). Can be int or float.
            creation_path: Path of the creation endpoint (default: "files")
            headers: Optional custom headers to include in all requests
            timeout: Socket timeout in seconds for every request (default: none)
            verify_tls_cert: Verify TLS certificates (default: True)
            checksum: Send SHA1 checksums with each chunk (default: False)
            metadata_encoding: Encoding for metadata values (default: utf-8)
            fingerprinter: Custom fingerprint implementation
            transport: Pre-built transport; the client then does not close it

        Raises:
            ValueError: If chunk_size is less than 1
        """
        self.chunk_size = self._validate_chunk_size(chunk_size)
        self.fingerprinter = fingerprinter or Fingerprint()

        self._owns_transport = transport is None
        self.transport = transport or TusTransport(
            base_url,
            creation_path=creation_path,
            headers=headers,
            timeout=timeout,
            verify_tls_cert=verify_tls_cert,
            checksum=checksum,
            metadata_encoding=metadata_encoding,
        )

        self._url_storage: Optional[URLStorage] = None
        self._remove_fingerprint_on_success = False

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - release the transport if we own it."""
        self.close()

    def close(self) -> None:
        """Close the transport if we own it."""
        if self._owns_transport:
            self.transport.close()

    @property
    def url(self) -> str:
        """Creation endpoint URL."""
        return self.transport.creation_url

    # Resumability configuration

    def enable_resuming(self, url_storage: Optional[URLStorage] = None) -> None:
        """Enable resuming of uploads.

        Args:
            url_storage: Store for fingerprint -> upload URL (default: in-memory)
        """
        self._url_storage = url_storage if url_storage is not None else MemoryURLStorage()

    def disable_resuming(self) -> None:
        """Disable resuming of uploads and forget the URL store."""
        self._url_storage = None

    @property
    def resuming_enabled(self) -> bool:
        return self._url_storage is not None

    @property
    def url_storage(self) -> Optional[URLStorage]:
        return self._url_storage

    def enable_remove_fingerprint_on_success(self) -> None:
        """Remove the stored fingerprint once an upload is confirmed complete."""
        self._remove_fingerprint_on_success = True

    def disable_remove_fingerprint_on_success(self) -> None:
        """Keep stored fingerprints after completed uploads."""
        self._remove_fingerprint_on_success = False

    @property
    def remove_fingerprint_on_success_enabled(self) -> bool:
        return self._remove_fingerprint_on_success

    # Single protocol steps

    def create_upload(
        self, size: int, metadata: Optional[dict[str, str]] = None
    ) -> UploadInfo:
        """Create a new upload on the server.

        Args:
            size: Total size of the upload in bytes
            metadata: Optional metadata dictionary

        Returns:
            UploadInfo with offset 0

        Raises:
            TusCommunicationError: If the server rejects the creation
        """
        upload_url = self.transport.create(size, metadata)
        logger.info(f"Upload created: {upload_url} ({size} bytes)")
        return UploadInfo(
            upload_url=upload_url,
            size=size,
            offset=0,
            metadata=dict(metadata or {}),
            creation_date=datetime.now(timezone.utc),
        )

    def get_upload_status(self, upload_url: str) -> UploadInfo:
        """Get the current status of an upload.

        Args:
            upload_url: URL of the upload

        Returns:
            UploadInfo with the server's offset, length and metadata

        Raises:
            TusCommunicationError: If the request fails
        """
        return self.transport.head_status(upload_url)

    def upload_chunk(self, upload_url: str, data: bytes, offset: int) -> int:
        """Upload a chunk of data.

        Args:
            upload_url: URL of the upload
            data: Chunk bytes
            offset: Offset of the chunk within the file

        Returns:
            The new offset reported by the server

        Raises:
            TusUploadFailed: If the server rejects the chunk
        """
        return self.transport.patch_chunk(upload_url, data, offset)

    # Whole-file operations

    def upload_file(
        self,
        file_path: str,
        chunk_size: Optional[Union[int, float]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        metadata: Optional[dict[str, str]] = None,
        fingerprint: Optional[str] = None,
    ) -> UploadInfo:
        """Create a new upload and send the whole file.

        When resuming is enabled, the upload URL is stored under the file's
        fingerprint before any data is sent, so an interrupted transfer can
        be resumed later.

        Args:
            file_path: Path to file to upload
            chunk_size: Optional override for chunk size
            progress_callback: Optional callback receiving the uploaded fraction
            metadata: Optional metadata; "filename" defaults to the file name
            fingerprint: Key for the URL store (default: derived from the file)

        Returns:
            UploadInfo from the final status query

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If chunk_size is less than 1
            TusCommunicationError: If upload fails
        """
        self._check_file(file_path)
        chunk_size = self._resolve_chunk_size(chunk_size)
        file_size = os.path.getsize(file_path)

        metadata = dict(metadata or {})
        metadata.setdefault("filename", os.path.basename(file_path))

        upload = self.create_upload(file_size, metadata)

        if self.resuming_enabled:
            fingerprint = fingerprint or self.get_fingerprint(file_path)
            self._url_storage.set_url(fingerprint, upload.upload_url)
            logger.debug(f"Stored {upload.upload_url} for fingerprint {fingerprint}")

        with open(file_path, "rb") as fs:
            self._upload_from(fs, upload.upload_url, 0, file_size, chunk_size, progress_callback)

        return self._finish(upload.upload_url, file_path, fingerprint)

    def resume_upload(
        self,
        file_path: str,
        fingerprint: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
        chunk_size: Optional[Union[int, float]] = None,
    ) -> UploadInfo:
        """Resume an interrupted upload using its fingerprint.

        Args:
            file_path: Path to file to upload
            fingerprint: Fingerprint of the file (default: derived from the file)
            progress_callback: Optional callback receiving the uploaded fraction
            chunk_size: Optional override for chunk size

        Returns:
            UploadInfo from the final status query

        Raises:
            ResumingNotEnabledError: If resuming is not enabled
            FingerprintNotFoundError: If no URL is stored for the fingerprint
            TusCommunicationError: If the server sends an unexpected response
        """
        if not self.resuming_enabled:
            raise ResumingNotEnabledError()

        self._check_file(file_path)
        fingerprint = fingerprint or self.get_fingerprint(file_path)
        upload_url = self._url_storage.get_url(fingerprint)
        if upload_url is None:
            raise FingerprintNotFoundError(fingerprint)

        logger.info(f"Resuming upload {upload_url} for fingerprint {fingerprint}")
        return self.resume_upload_from_url(
            file_path,
            upload_url,
            progress_callback=progress_callback,
            chunk_size=chunk_size,
            fingerprint=fingerprint,
        )

    def resume_upload_from_url(
        self,
        file_path: str,
        upload_url: str,
        progress_callback: Optional[ProgressCallback] = None,
        chunk_size: Optional[Union[int, float]] = None,
        fingerprint: Optional[str] = None,
    ) -> UploadInfo:
        """Continue an upload from the offset the server reports.

        Args:
            file_path: Path to file to upload
            upload_url: URL of the existing upload
            progress_callback: Optional callback receiving the uploaded fraction
            chunk_size: Optional override for chunk size
            fingerprint: Fingerprint to clean up on success (default: derived)

        Returns:
            UploadInfo describing the completed (or already complete) upload

        Raises:
            FileNotFoundError: If file doesn't exist
            TusCommunicationError: If the server sends an unexpected response
        """
        self._check_file(file_path)
        chunk_size = self._resolve_chunk_size(chunk_size)

        status = self.get_upload_status(upload_url)
        if status.is_complete:
            logger.info(f"Upload {upload_url} is already complete ({status.size} bytes)")
            self._upload_finished(file_path, fingerprint)
            return status

        file_size = os.path.getsize(file_path)
        if file_size != status.size:
            logger.warning(
                f"Local file size {file_size} differs from upload length {status.size} "
                f"for {upload_url}"
            )

        logger.info(f"Continuing {upload_url} at offset {status.offset}/{status.size}")
        with open(file_path, "rb") as fs:
            self._upload_from(
                fs, upload_url, status.offset, status.size, chunk_size, progress_callback
            )

        return self._finish(upload_url, file_path, fingerprint)

    def resume_or_create_upload(
        self,
        file_path: str,
        fingerprint: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
        chunk_size: Optional[Union[int, float]] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> UploadInfo:
        """Resume an upload, or create a new one if it cannot be resumed.

        A new upload is created when resuming is disabled, when no URL is
        stored for the fingerprint, or when the server answers 404 for the
        stored URL. Any other error propagates.

        Args:
            file_path: Path to file to upload
            fingerprint: Fingerprint of the file (default: derived from the file)
            progress_callback: Optional callback receiving the uploaded fraction
            chunk_size: Optional override for chunk size
            metadata: Metadata used if a new upload is created

        Returns:
            UploadInfo from the final status query
        """
        try:
            return self.resume_upload(
                file_path,
                fingerprint,
                progress_callback=progress_callback,
                chunk_size=chunk_size,
            )
        except (ResumingNotEnabledError, FingerprintNotFoundError) as e:
            logger.info(f"Creating new upload for {file_path}: {e}")
        except TusCommunicationError as e:
            if e.status_code != 404:
                raise
            logger.warning(f"Stored upload for {file_path} no longer exists, creating new one")

        return self.upload_file(
            file_path,
            chunk_size=chunk_size,
            progress_callback=progress_callback,
            metadata=metadata,
            fingerprint=fingerprint,
        )

    def get_fingerprint(self, file_path: str) -> str:
        """Get the fingerprint used as URL store key for a file."""
        return self.fingerprinter.get_fingerprint(file_path)

    def update_headers(self, headers: dict[str, str]) -> None:
        """Update custom headers for all requests.

        Args:
            headers: Dictionary of header names to values

        Example:
            >>> client = TusClient("http://localhost:8080")
            >>> client.update_headers({"Authorization": "Bearer token"})
        """
        self.transport.headers.update(headers)

    def get_headers(self) -> dict[str, str]:
        """Get current custom headers.

        Returns:
            Dictionary of current custom headers
        """
        return self.transport.headers.copy()

    # Internals

    def _upload_from(
        self,
        fs: IO[bytes],
        upload_url: str,
        offset: int,
        size: int,
        chunk_size: int,
        progress_callback: Optional[ProgressCallback],
    ) -> int:
        """Send chunks starting at offset until size is reached or data runs out.

        The server's reported offset is adopted after every chunk, so a
        partially accepted chunk is re-read from where the server stopped.
        """
        while offset < size:
            fs.seek(offset)
            chunk = fs.read(min(chunk_size, size - offset))
            if not chunk:
                break

            new_offset = self.upload_chunk(upload_url, chunk, offset)
            if new_offset != offset + len(chunk):
                logger.debug(
                    f"Server reported offset {new_offset} after sending "
                    f"{len(chunk)} bytes at {offset}"
                )
            offset = min(new_offset, size)

            if progress_callback:
                progress_callback(offset / size)

        return offset

    def _finish(
        self, upload_url: str, file_path: str, fingerprint: Optional[str]
    ) -> UploadInfo:
        """Query the final status and clean up the fingerprint on completion."""
        status = self.get_upload_status(upload_url)
        if status.is_complete:
            logger.info(f"Upload completed: {upload_url} ({status.offset} bytes)")
            self._upload_finished(file_path, fingerprint)
        else:
            logger.warning(f"Upload {upload_url} stopped at offset {status.offset}/{status.size}")
        return status

    def _upload_finished(self, file_path: str, fingerprint: Optional[str]) -> None:
        if self.resuming_enabled and self._remove_fingerprint_on_success:
            fingerprint = fingerprint or self.get_fingerprint(file_path)
            self._url_storage.remove_url(fingerprint)
            logger.debug(f"Removed fingerprint {fingerprint}")

    def _resolve_chunk_size(self, chunk_size: Optional[Union[int, float]]) -> int:
        if chunk_size is None:
            return self.chunk_size
        return self._validate_chunk_size(chunk_size)

    @staticmethod
    def _validate_chunk_size(chunk_size: Union[int, float]) -> int:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1 byte, got {chunk_size}")
        return int(chunk_size)

    @staticmethod
    def _check_file(file_path: str) -> None:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")
