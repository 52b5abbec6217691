"""Core protocols for dependency injection."""

from oauthkit.core.protocols.network_activity import NetworkActivityNotifier
from oauthkit.core.protocols.transport import (
    NetworkRequest,
    NetworkResponse,
    TransportCallback,
    TransportHandler,
    TransportOperation,
)

__all__ = [
    "NetworkActivityNotifier",
    "NetworkRequest",
    "NetworkResponse",
    "TransportCallback",
    "TransportHandler",
    "TransportOperation",
]
