"""TransportHandler protocol: the seam between oauthkit and an HTTP engine.

A transport turns a NetworkRequest into an operation. Nothing is sent until
the operation is resumed; cancelling an operation stops it and the callback
reports a cancellation error if it fires at all.

Usage:
    request = transport.request("https://api.example.com/me")
    operation = transport.data_operation(request, on_complete)
    operation.resume()
    ...
    operation.cancel()
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass
class NetworkRequest:
    """Mutable description of an HTTP request."""

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def set_header(self, name: str, value: Optional[str]) -> None:
        """Replace a header (any casing); None removes it."""
        lowered = name.lower()
        for key in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[key]
        if value is not None:
            self.headers[name] = value


@runtime_checkable
class NetworkResponse(Protocol):
    """What oauthkit reads from a transport response."""

    status_code: int
    headers: Mapping[str, str]
    url: Any


TransportCallback = Callable[
    [Optional[bytes], Optional[NetworkResponse], Optional[BaseException]], None
]


@runtime_checkable
class TransportOperation(Protocol):
    """A single transport exchange."""

    def resume(self) -> None:
        """Start (or continue) sending the request."""
        ...

    def cancel(self) -> None:
        """Stop the exchange. Safe to call more than once."""
        ...


@runtime_checkable
class TransportHandler(Protocol):
    """Protocol for HTTP engines used by SignedRequest.

    Implementations may be shared by many requests.
    """

    def data_operation(
        self, request: NetworkRequest, callback: Optional[TransportCallback] = None
    ) -> TransportOperation:
        """Create an operation for `request`. Completion is reported to `callback`.

        Raises:
            TransportInvalidatedError: After finish_operations_and_invalidate().
        """
        ...

    def data_operation_for_url(
        self, url: str, callback: Optional[TransportCallback] = None
    ) -> TransportOperation:
        """Create a GET operation for `url`."""
        ...

    def finish_operations_and_invalidate(self) -> None:
        """Let in-flight operations finish, then refuse new ones. One-way."""
        ...

    def request(self, url: str) -> NetworkRequest:
        """Build a request for `url` with this transport's defaults."""
        ...
