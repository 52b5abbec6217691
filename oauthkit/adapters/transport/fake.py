"""Fake transport for testing.

Operations never touch the network. Tests complete them explicitly with
fulfill() or respond(), which makes callback timing fully deterministic.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from oauthkit.core.exceptions import TransportInvalidatedError
from oauthkit.core.protocols.transport import NetworkRequest, TransportCallback


@dataclass
class FakeResponse:
    """Minimal NetworkResponse."""

    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    url: Any = None


class FakeOperation:
    """Recorded operation; completes only when the fake transport is told to."""

    def __init__(self, request: NetworkRequest, callback: Optional[TransportCallback]) -> None:
        self.request = request
        self.callback = callback
        self.is_resumed = False
        self.is_cancelled = False
        self.is_completed = False

    def resume(self) -> None:
        if self.is_cancelled:
            return
        self.is_resumed = True

    def cancel(self) -> None:
        self.is_cancelled = True


class FakeTransportHandler:
    """Test implementation of TransportHandler.

    Usage:
        transport = FakeTransportHandler()
        client = OAuthClient(credential, transport=transport, ...)
        client.get("https://api.example.com/me", success=..., failure=...)

        transport.respond("https://api.example.com/me", body=b"{}")
        assert transport.requests[0].method == "GET"
    """

    def __init__(self) -> None:
        """Initialize with no operations."""
        self.operations: List[FakeOperation] = []
        self.invalidated = False

    def request(self, url: str) -> NetworkRequest:
        return NetworkRequest(url=url)

    def data_operation(
        self, request: NetworkRequest, callback: Optional[TransportCallback] = None
    ) -> FakeOperation:
        if self.invalidated:
            raise TransportInvalidatedError()
        operation = FakeOperation(request, callback)
        self.operations.append(operation)
        return operation

    def data_operation_for_url(
        self, url: str, callback: Optional[TransportCallback] = None
    ) -> FakeOperation:
        return self.data_operation(self.request(url), callback)

    def finish_operations_and_invalidate(self) -> None:
        self.invalidated = True

    # Test helpers

    @property
    def requests(self) -> List[NetworkRequest]:
        """Every request handed to data_operation, in order."""
        return [op.request for op in self.operations]

    @property
    def pending(self) -> List[FakeOperation]:
        """Resumed operations that are neither cancelled nor completed."""
        return [
            op
            for op in self.operations
            if op.is_resumed and not op.is_cancelled and not op.is_completed
        ]

    def find(self, url: str) -> FakeOperation:
        """Oldest pending operation whose URL is `url` (query string ignored)."""
        for op in self.pending:
            if op.request.url == url or op.request.url.startswith(url + "?"):
                return op
        raise AssertionError(f"No pending operation for {url}")

    def fulfill(
        self,
        url: str,
        data: Optional[bytes] = None,
        response: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Complete the pending operation for `url` with raw callback values."""
        op = self.find(url)
        op.is_completed = True
        if op.callback is not None:
            op.callback(data, response, error)

    def respond(
        self,
        url: str,
        *,
        status_code: int = 200,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """Complete the pending operation for `url` with an HTTP response."""
        response = FakeResponse(status_code=status_code, headers=headers or {}, url=url)
        self.fulfill(url, data=body, response=response)
