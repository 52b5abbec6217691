"""Execution contexts on which request and flow callbacks are delivered.

An execution context is any callable that accepts a zero-argument callable and
arranges for it to run. Callbacks submitted to the same context run in
submission order.
"""

import asyncio
from typing import Callable, Optional, Tuple

ExecutionContext = Callable[[Callable[[], None]], None]


class EventLoopExecutionContext:
    """Deliver callbacks on an asyncio event loop.

    Uses the bound loop if one is given, otherwise the loop running in the
    calling thread. Without either, the callback runs inline.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Bind to `loop`, or resolve the running loop per call when None."""
        self._loop = loop

    def __call__(self, callback: Callable[[], None]) -> None:
        """Schedule `callback` with call_soon_threadsafe."""
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                callback()
                return
        loop.call_soon_threadsafe(callback)


class ImmediateExecutionContext:
    """Run callbacks inline on the calling thread."""

    def __call__(self, callback: Callable[[], None]) -> None:
        """Invoke `callback` now."""
        callback()


def bind_future(
    loop: asyncio.AbstractEventLoop,
) -> Tuple[asyncio.Future, Callable[[object], None], Callable[[BaseException], None]]:
    """Create a future on `loop` plus thread-safe callbacks that resolve it once.

    Returns:
        (future, resolve, reject)
    """
    future: asyncio.Future = loop.create_future()

    def _settle(setter: Callable[[object], None], value: object) -> None:
        if not future.done():
            setter(value)

    def resolve(value: object) -> None:
        loop.call_soon_threadsafe(_settle, future.set_result, value)

    def reject(error: BaseException) -> None:
        loop.call_soon_threadsafe(_settle, future.set_exception, error)

    return future, resolve, reject
