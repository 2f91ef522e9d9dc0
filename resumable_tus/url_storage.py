"""
URL storage interface and implementations for resumable uploads.

Allows storing and retrieving upload URLs based on file fingerprints,
enabling resumable uploads across sessions.
"""

import json
import logging
import os
import tempfile
from threading import Lock
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class URLStorage(Protocol):
    """Interface for URL storage implementations.

    Any object providing these three methods can be used as a URL store.
    Each call must be atomic on its own; no isolation across calls is assumed.
    """

    def get_url(self, fingerprint: str) -> Optional[str]:
        """
        Retrieve upload URL for a given file fingerprint.

        Args:
            fingerprint: Unique file fingerprint

        Returns:
            Upload URL if found, None otherwise
        """
        ...

    def set_url(self, fingerprint: str, url: str) -> None:
        """
        Store upload URL for a given file fingerprint.

        Args:
            fingerprint: Unique file fingerprint
            url: Upload URL to store
        """
        ...

    def remove_url(self, fingerprint: str) -> None:
        """
        Remove stored URL for a given file fingerprint.

        Args:
            fingerprint: Unique file fingerprint
        """
        ...


class MemoryURLStorage:
    """
    In-memory URL storage.

    Stored URLs are lost when the process exits.
    """

    def __init__(self):
        self._urls: dict[str, str] = {}
        self._lock = Lock()

    def get_url(self, fingerprint: str) -> Optional[str]:
        """Retrieve upload URL for fingerprint."""
        with self._lock:
            return self._urls.get(fingerprint)

    def set_url(self, fingerprint: str, url: str) -> None:
        """Store upload URL for fingerprint."""
        with self._lock:
            self._urls[fingerprint] = url

    def remove_url(self, fingerprint: str) -> None:
        """Remove URL for fingerprint."""
        with self._lock:
            self._urls.pop(fingerprint, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)


class FileURLStorage:
    """
    File-based URL storage using JSON.

    Stores upload URLs in a JSON file for persistence across sessions.
    The file is replaced atomically on every write, so an interrupted write
    leaves the previous contents in place.
    """

    def __init__(self, storage_path: str = ".tus_urls.json"):
        """
        Initialize file-based URL storage.

        Args:
            storage_path: Path to JSON file for storing URLs
        """
        self.storage_path = storage_path
        self._lock = Lock()
        self._ensure_file_exists()

    def _ensure_file_exists(self):
        """Create storage file if it doesn't exist."""
        if not os.path.exists(self.storage_path):
            self._save_data({})

    def _load_data(self) -> dict:
        """Load data from storage file."""
        try:
            with open(self.storage_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            logger.warning(f"URL storage file {self.storage_path} is corrupt, ignoring it: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"URL storage file {self.storage_path} does not hold an object, ignoring it")
            return {}
        return data

    def _save_data(self, data: dict):
        """Save data to storage file via a temporary file in the same directory."""
        directory = os.path.dirname(os.path.abspath(self.storage_path))
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".tus_urls-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.storage_path)
        except BaseException:
            os.unlink(temp_path)
            raise

    def get_url(self, fingerprint: str) -> Optional[str]:
        """Retrieve upload URL for fingerprint."""
        with self._lock:
            return self._load_data().get(fingerprint)

    def set_url(self, fingerprint: str, url: str) -> None:
        """Store upload URL for fingerprint."""
        with self._lock:
            data = self._load_data()
            data[fingerprint] = url
            self._save_data(data)

    def remove_url(self, fingerprint: str) -> None:
        """Remove URL for fingerprint."""
        with self._lock:
            data = self._load_data()
            if fingerprint in data:
                del data[fingerprint]
                self._save_data(data)
