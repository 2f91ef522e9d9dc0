"""TUS protocol client implementations."""

from resumable_tus.client.base import TusClient
from resumable_tus.client.transport import TusTransport

__all__ = ["TusClient", "TusTransport"]
