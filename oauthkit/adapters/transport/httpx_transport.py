"""httpx-backed TransportHandler.

Each operation sends its request on an asyncio task. The handler may be
shared by any number of requests; one httpx.AsyncClient (and its connection
pool) serves all of them.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Coroutine, Optional, Set

import httpx

from oauthkit.core.config import settings
from oauthkit.core.exceptions import TransportInvalidatedError
from oauthkit.core.logging import logger
from oauthkit.core.protocols.transport import NetworkRequest, TransportCallback


class HttpxOperation:
    """One request/response exchange over httpx.

    The callback fires at most once: with the response, with the exception
    that ended the exchange, or with asyncio.CancelledError when the task is
    cancelled mid-request.
    """

    def __init__(
        self,
        handler: "HttpxTransportHandler",
        request: NetworkRequest,
        callback: Optional[TransportCallback],
    ) -> None:
        self._handler = handler
        self.request = request
        self._callback = callback
        self._task: Any = None
        self._cancelled = False

    def resume(self) -> None:
        """Start sending. Later calls are no-ops."""
        if self._task is not None or self._cancelled:
            return
        self._task = self._handler._spawn(self._perform())
        self._handler._track(self)
        self._task.add_done_callback(lambda _: self._handler._untrack(self))

    def cancel(self) -> None:
        """Cancel the underlying task. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()

    async def _perform(self) -> None:
        request = self.request
        try:
            response = await self._handler.client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=request.timeout,
            )
        except asyncio.CancelledError:
            self._complete(None, None, asyncio.CancelledError())
            raise
        except httpx.HTTPError as e:
            logger.debug(f"[HttpxTransport] {request.method} {request.url} failed: {e}")
            self._complete(None, None, e)
        except Exception as e:
            # InvalidURL, a closed client and bad header values are not HTTPError.
            logger.warning(f"[HttpxTransport] {request.method} {request.url} raised: {e!r}")
            self._complete(None, None, e)
        else:
            self._complete(response.content, response, None)

    def _complete(self, data, response, error) -> None:
        if self._callback is None:
            return
        try:
            self._callback(data, response, error)
        except Exception as e:
            logger.error(f"[HttpxTransport] completion callback raised: {e}", exc_info=True)


class HttpxTransportHandler:
    """TransportHandler implementation on top of httpx.AsyncClient.

    Operations run on `loop` when given, otherwise on the loop running in the
    thread that resumes them.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Initialize the handler.

        Args:
            client: Client to send with. One is created (and owned) when omitted.
            timeout: Default request timeout; settings.HTTP_TIMEOUT_SECONDS when None.
            loop: Event loop that runs the operations.
        """
        self.client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._loop = loop
        self._operations: Set[HttpxOperation] = set()
        self._invalidated = False
        self._closed = False
        self._lock = threading.Lock()

    @property
    def invalidated(self) -> bool:
        """True once finish_operations_and_invalidate() has been called."""
        return self._invalidated

    def request(self, url: str) -> NetworkRequest:
        """Build a GET request with this handler's default timeout."""
        return NetworkRequest(url=url, timeout=self.timeout)

    def data_operation(
        self, request: NetworkRequest, callback: Optional[TransportCallback] = None
    ) -> HttpxOperation:
        """Create an operation for `request`; nothing is sent until resume()."""
        if self._invalidated:
            raise TransportInvalidatedError()
        return HttpxOperation(self, request, callback)

    def data_operation_for_url(
        self, url: str, callback: Optional[TransportCallback] = None
    ) -> HttpxOperation:
        """Create a GET operation for `url`."""
        return self.data_operation(self.request(url), callback)

    def finish_operations_and_invalidate(self) -> None:
        """Refuse new operations and close the client once in-flight ones finish."""
        with self._lock:
            if self._invalidated:
                return
            self._invalidated = True
            idle = not self._operations
        logger.debug("[HttpxTransport] invalidated")
        if idle:
            self._close_client()

    async def aclose(self) -> None:
        """Invalidate and close the client immediately."""
        with self._lock:
            self._invalidated = True
            self._closed = True
        if self._owns_client:
            await self.client.aclose()

    def _track(self, operation: HttpxOperation) -> None:
        with self._lock:
            self._operations.add(operation)

    def _untrack(self, operation: HttpxOperation) -> None:
        with self._lock:
            self._operations.discard(operation)
            drained = self._invalidated and not self._operations
        if drained:
            self._close_client()

    def _close_client(self) -> None:
        with self._lock:
            if self._closed or not self._owns_client:
                return
            self._closed = True
        try:
            self._spawn(self.client.aclose())
        except RuntimeError:
            logger.warning("[HttpxTransport] no event loop to close the client on; call aclose()")
            with self._lock:
                self._closed = False

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> Any:
        try:
            running: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        loop = self._loop or running
        if loop is None:
            coro.close()
            raise RuntimeError(
                "HttpxTransportHandler needs a running event loop or an explicit loop"
            )
        if loop is running:
            return loop.create_task(coro)
        return asyncio.run_coroutine_threadsafe(coro, loop)
