"""Fake network activity notifier for testing.

Pure counter with call logs. Keeps the unbalanced-call contract so tests
catch code that ends activity it never started.
"""

from typing import List

from oauthkit.core.exceptions import UnbalancedActivityCallError


class FakeNetworkActivityNotifier:
    """Test implementation of NetworkActivityNotifier.

    Usage:
        fake = FakeNetworkActivityNotifier()
        client = OAuthClient(credential, network_activity_notifier=fake, ...)

        assert fake.start_count == 1
        assert fake.active_network_activities == 0
    """

    def __init__(self) -> None:
        """Initialize with zero activity."""
        self.active_network_activities = 0
        self.events: List[str] = []  # ordered log: "started" / "ended" / "unbalanced"

    def network_activity_started(self) -> None:
        self.active_network_activities += 1
        self.events.append("started")

    def network_activity_ended(self) -> None:
        if self.active_network_activities <= 0:
            self.events.append("unbalanced")
            raise UnbalancedActivityCallError()
        self.active_network_activities -= 1
        self.events.append("ended")

    # Test helpers

    @property
    def start_count(self) -> int:
        """Number of network_activity_started() calls."""
        return self.events.count("started")

    @property
    def end_count(self) -> int:
        """Number of successful network_activity_ended() calls."""
        return self.events.count("ended")

    def clear(self) -> None:
        """Reset all state."""
        self.active_network_activities = 0
        self.events.clear()
