"""NetworkActivityNotifier protocol.

Balanced start/end counter that drives an external "network busy" indicator
(a UI spinner, a telemetry gauge). Every in-flight SignedRequest calls
network_activity_started() once and network_activity_ended() once.

Usage:
    notifier.network_activity_started()
    try:
        ...
    finally:
        notifier.network_activity_ended()
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class NetworkActivityNotifier(Protocol):
    """Protocol for counting concurrent network activities."""

    @property
    def active_network_activities(self) -> int:
        """Number of activities started and not yet ended."""
        ...

    def network_activity_started(self) -> None:
        """Record one more in-flight activity."""
        ...

    def network_activity_ended(self) -> None:
        """Record that an activity finished.

        Raises:
            UnbalancedActivityCallError: If no activity is in flight. The
                count is left unchanged.
        """
        ...
