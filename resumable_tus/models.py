"""Data model describing an upload resource on a TUS server."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse


@dataclass
class UploadInfo:
    """Snapshot of an upload resource.

    Attributes:
        upload_url: Absolute URL of the upload resource
        size: Declared total length in bytes
        offset: Number of bytes acknowledged by the server
        metadata: Decoded Upload-Metadata pairs
        id: Last path segment of upload_url
        creation_date: When the client created the upload (None for status results)
        expiration_date: Value of the server's Upload-Expires header, if sent
    """

    upload_url: str
    size: int
    offset: int = 0
    metadata: dict[str, str] = field(default_factory=dict)
    id: str = ""
    creation_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"size must be non-negative, got {self.size}")
        if not 0 <= self.offset <= self.size:
            raise ValueError(f"offset {self.offset} outside of upload size {self.size}")
        if not self.id:
            self.id = urlparse(self.upload_url).path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def is_complete(self) -> bool:
        """Whether the server has received every declared byte."""
        return self.offset >= self.size

    @property
    def progress(self) -> float:
        """Get progress as a fraction between 0 and 1."""
        if self.size > 0:
            return self.offset / self.size
        return 1.0
