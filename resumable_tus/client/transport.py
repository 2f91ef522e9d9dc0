"""HTTP transport for the requests of the TUS core protocol."""

import base64
import hashlib
import logging
import ssl
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.error import HTTPError
from urllib.parse import urljoin
from urllib.request import HTTPSHandler, OpenerDirector, Request, build_opener

from resumable_tus.exceptions import TusCommunicationError, TusUploadFailed
from resumable_tus.metadata import decode_metadata, encode_metadata
from resumable_tus.models import UploadInfo

logger = logging.getLogger(__name__)


class TusTransport:
    """Issues the creation, status and chunk requests of TUS 1.0.0.

    The transport validates responses but does not interpret them: any
    non-2xx status, or a 2xx response without a required header, raises
    ``TusCommunicationError``. Connection failures and timeouts propagate
    unchanged and are never retried here.

    Example:
        >>> with TusTransport("http://localhost:8080") as transport:
        ...     url = transport.create(1024, {"filename": "a.bin"})
        ...     offset = transport.patch_chunk(url, b"x" * 1024, 0)
    """

    TUS_VERSION = "1.0.0"
    CHUNK_CONTENT_TYPE = "application/offset+octet-stream"

    def __init__(
        self,
        base_url: str,
        creation_path: str = "files",
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        verify_tls_cert: bool = True,
        checksum: bool = False,
        metadata_encoding: str = "utf-8",
    ):
        """Initialize the transport.

        Args:
            base_url: Base URL of TUS server
            creation_path: Path of the creation endpoint relative to base_url
            headers: Optional custom headers to include in all requests
            timeout: Socket timeout in seconds for every request (default: none)
            verify_tls_cert: Verify TLS certificates (default: True)
            checksum: Send SHA1 Upload-Checksum headers with chunks (default: False)
            metadata_encoding: Encoding for metadata values (default: utf-8)
        """
        if not base_url:
            raise ValueError("base_url must not be empty")
        self.base_url = base_url.rstrip("/")
        self.creation_url = urljoin(self.base_url + "/", creation_path.lstrip("/"))
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.verify_tls_cert = verify_tls_cert
        self.checksum = checksum
        self.metadata_encoding = metadata_encoding
        self._opener: Optional[OpenerDirector] = build_opener(
            HTTPSHandler(context=self._ssl_context())
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - release the opener."""
        self.close()

    def close(self) -> None:
        """Release the underlying opener. Further requests raise RuntimeError."""
        if self._opener is not None:
            self._opener.close()
            self._opener = None

    @property
    def closed(self) -> bool:
        return self._opener is None

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.verify_tls_cert:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def create(self, size: int, metadata: Optional[dict[str, str]] = None) -> str:
        """Create a new upload resource.

        Args:
            size: Declared upload length in bytes
            metadata: Optional metadata dictionary

        Returns:
            Absolute upload URL

        Raises:
            TusCommunicationError: On a non-2xx status or a missing Location header
        """
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")

        headers = {"Upload-Length": str(size)}
        encoded_metadata = encode_metadata(metadata, self.metadata_encoding)
        if encoded_metadata is not None:
            headers["Upload-Metadata"] = encoded_metadata

        status, response_headers, body = self._request(
            "POST", self.creation_url, headers, action="creating upload"
        )

        location = response_headers.get("Location")
        if not location:
            raise TusCommunicationError(
                "Missing upload URL in response for creating upload",
                status_code=status,
                response_content=body,
                headers=response_headers,
            )

        # Handle relative URLs
        upload_url = urljoin(self.creation_url, location)
        logger.debug(f"Created upload {upload_url} with length {size}")
        return upload_url

    def head_status(self, upload_url: str) -> UploadInfo:
        """Query the server for the state of an upload.

        Args:
            upload_url: URL of the upload

        Returns:
            UploadInfo with the server's length, offset, metadata and expiration

        Raises:
            TusCommunicationError: On a non-2xx status or missing/invalid headers
        """
        status, response_headers, body = self._request(
            "HEAD", upload_url, {}, action="getting upload status"
        )

        def fail(message: str) -> TusCommunicationError:
            return TusCommunicationError(
                message, status_code=status, response_content=body, headers=response_headers
            )

        size = self._parse_int_header(response_headers, "Upload-Length", fail)
        offset = self._parse_int_header(response_headers, "Upload-Offset", fail)
        if offset > size:
            raise fail(f"Upload-Offset {offset} exceeds Upload-Length {size}")

        try:
            metadata = decode_metadata(
                response_headers.get("Upload-Metadata"), self.metadata_encoding
            )
        except ValueError as e:
            raise fail(f"Invalid Upload-Metadata header in response: {e}") from e

        logger.debug(f"Status of {upload_url}: offset={offset}, length={size}")
        return UploadInfo(
            upload_url=upload_url,
            size=size,
            offset=offset,
            metadata=metadata,
            expiration_date=self._parse_expires(response_headers),
        )

    def patch_chunk(self, upload_url: str, data: bytes, offset: int) -> int:
        """Send one chunk of data at the given offset.

        Args:
            upload_url: URL of the upload
            data: Raw chunk bytes
            offset: Offset at which the chunk starts

        Returns:
            The offset reported by the server after the chunk was applied.
            It is authoritative and may be less than offset + len(data).

        Raises:
            TusUploadFailed: On a non-2xx status or a missing/invalid Upload-Offset
        """
        headers = {
            "Upload-Offset": str(offset),
            "Content-Type": self.CHUNK_CONTENT_TYPE,
            "Content-Length": str(len(data)),
        }

        # Add checksum if enabled
        if self.checksum:
            checksum_bytes = hashlib.sha1(data).digest()
            checksum_b64 = base64.b64encode(checksum_bytes).decode("ascii")
            headers["Upload-Checksum"] = f"sha1 {checksum_b64}"

        status, response_headers, body = self._request(
            "PATCH",
            upload_url,
            headers,
            data=data,
            action=f"uploading chunk at offset {offset}",
            error_cls=TusUploadFailed,
        )

        def fail(message: str) -> TusUploadFailed:
            return TusUploadFailed(
                message, status_code=status, response_content=body, headers=response_headers
            )

        new_offset = self._parse_int_header(response_headers, "Upload-Offset", fail)
        logger.debug(f"PATCH {upload_url}: sent {len(data)} bytes at {offset}, now {new_offset}")
        return new_offset

    def _request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        data: Optional[bytes] = None,
        action: str = "sending request",
        error_cls: type = TusCommunicationError,
    ) -> tuple[int, Message, bytes]:
        """Send a request and return (status, headers, body) of a 2xx response."""
        if self._opener is None:
            raise RuntimeError("Transport is closed")

        request_headers = {
            "Tus-Resumable": self.TUS_VERSION,
            **self.headers,
            **headers,
        }
        req = Request(url, data=data, headers=request_headers, method=method)
        kwargs = {} if self.timeout is None else {"timeout": self.timeout}

        try:
            with self._opener.open(req, **kwargs) as response:
                status = response.status
                response_headers = response.headers
                body = response.read()
        except HTTPError as e:
            raise error_cls(
                f"Unexpected status code ({e.code}) while {action}: {e.reason}",
                status_code=e.code,
                response_content=e.read(),
                headers=e.headers,
            ) from e

        if not 200 <= status < 300:
            raise error_cls(
                f"Unexpected status code ({status}) while {action}",
                status_code=status,
                response_content=body,
                headers=response_headers,
            )
        return status, response_headers, body

    @staticmethod
    def _parse_int_header(headers: Message, name: str, fail) -> int:
        value = headers.get(name)
        if value is None or not value.strip():
            raise fail(f"Missing {name} header in response")
        try:
            number = int(value.strip())
        except ValueError:
            raise fail(f"Invalid {name} header in response: {value!r}") from None
        if number < 0:
            raise fail(f"Negative {name} header in response: {number}")
        return number

    @staticmethod
    def _parse_expires(headers: Message):
        value = headers.get("Upload-Expires")
        if not value:
            return None
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unparseable Upload-Expires header: {value!r}")
            return None

