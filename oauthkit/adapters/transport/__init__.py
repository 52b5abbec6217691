"""Transport adapters."""

from oauthkit.adapters.transport.fake import FakeResponse, FakeTransportHandler
from oauthkit.adapters.transport.httpx_transport import HttpxTransportHandler

__all__ = ["FakeResponse", "FakeTransportHandler", "HttpxTransportHandler"]
