"""
Global resumable_tus exception classes.

Network-level failures are not wrapped: ``urllib.error.URLError`` and
``OSError`` reach the caller unchanged.
"""

from enum import Enum
from typing import Mapping, Optional


class ErrorKind(Enum):
    """Discriminates the failures raised by the client."""

    PROTOCOL = "protocol"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"


class TusError(Exception):
    """Base class for all errors raised by resumable_tus."""

    kind: ErrorKind = ErrorKind.PROTOCOL


class TusCommunicationError(TusError):
    """
    Exception raised when communication with TUS server behaves unexpectedly.

    Attributes:
        message (str): Main message of the exception
        status_code (int): HTTP status code of response indicating an error
        response_content (bytes): Content of response indicating an error
        headers (dict): Response headers, if a response was received
    """

    kind = ErrorKind.PROTOCOL

    def __init__(
        self,
        message: Optional[str],
        status_code: Optional[int] = None,
        response_content: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        default_message = f"Communication with TUS server failed with status {status_code}"
        message = message or default_message
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_content = response_content
        self.headers = dict(headers.items()) if headers else {}


class TusUploadFailed(TusCommunicationError):
    """Exception raised when an attempted chunk upload fails."""

    pass


class ResumingNotEnabledError(TusError):
    """Raised when an upload is resumed on a client without resuming enabled."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self):
        super().__init__(
            "Resuming not enabled for this client. Use enable_resuming() to do so."
        )


class FingerprintNotFoundError(TusError):
    """
    Raised when no upload URL has been stored for a fingerprint.

    Attributes:
        fingerprint (str): The fingerprint that was looked up
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, fingerprint: str):
        super().__init__(f"Fingerprint not found in storage: {fingerprint}")
        self.fingerprint = fingerprint
