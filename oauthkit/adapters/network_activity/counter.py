"""Thread-safe network activity counter.

Keeps a count of in-flight activities and calls an update handler with the
"busy" flag every time the count changes. The handler is the hook for the
embedding application's indicator; by default it only logs.

Thread-safe via threading.RLock. The handler runs while the lock is held so
its calls arrive in the same order as the count changes.
"""

from __future__ import annotations

import threading
from typing import Callable

from oauthkit.core.exceptions import UnbalancedActivityCallError
from oauthkit.core.logging import logger

UpdateHandler = Callable[[bool], None]


def log_activity_visibility(visible: bool) -> None:
    """Default update handler."""
    logger.debug(f"[NetworkActivity] indicator {'on' if visible else 'off'}")


class DefaultNetworkActivityNotifier:
    """Counting implementation of the NetworkActivityNotifier protocol.

    Attributes:
        update_handler: Called with `count > 0` whenever the count changes.
    """

    def __init__(self, update_handler: UpdateHandler = log_activity_visibility) -> None:
        """Initialize the counter at zero.

        Args:
            update_handler: Receives True while any activity is in flight.
        """
        self.update_handler = update_handler
        self._count = 0
        self._lock = threading.RLock()

    @property
    def active_network_activities(self) -> int:
        """Current number of in-flight activities."""
        with self._lock:
            return self._count

    def network_activity_started(self) -> None:
        """Increment the count."""
        with self._lock:
            self._set_count(self._count + 1)

    def network_activity_ended(self) -> None:
        """Decrement the count.

        Raises:
            UnbalancedActivityCallError: If the count is already zero.
        """
        with self._lock:
            if self._count <= 0:
                logger.error("[NetworkActivity] network_activity_ended() without a matching start")
                raise UnbalancedActivityCallError()
            self._set_count(self._count - 1)

    def _set_count(self, value: int) -> None:
        if value != self._count:
            self._count = value
            self.update_handler(value > 0)
