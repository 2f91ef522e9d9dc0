"""Resumable TUS Client

A Python implementation of the client side of the TUS resumable upload
protocol (version 1.0.0), with minimal dependencies.
"""

__version__ = "0.1.0"

from resumable_tus.client import TusClient, TusTransport
from resumable_tus.exceptions import (
    ErrorKind,
    FingerprintNotFoundError,
    ResumingNotEnabledError,
    TusCommunicationError,
    TusError,
    TusUploadFailed,
)
from resumable_tus.fingerprint import Fingerprint
from resumable_tus.metadata import decode_metadata, encode_metadata
from resumable_tus.models import UploadInfo
from resumable_tus.url_storage import FileURLStorage, MemoryURLStorage, URLStorage

__all__ = [
    "TusClient",
    "TusTransport",
    "UploadInfo",
    "ErrorKind",
    "TusError",
    "TusCommunicationError",
    "TusUploadFailed",
    "ResumingNotEnabledError",
    "FingerprintNotFoundError",
    "Fingerprint",
    "URLStorage",
    "MemoryURLStorage",
    "FileURLStorage",
    "encode_metadata",
    "decode_metadata",
]
