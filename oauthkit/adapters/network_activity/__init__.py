"""Network activity notifier adapters."""

from oauthkit.adapters.network_activity.counter import DefaultNetworkActivityNotifier
from oauthkit.adapters.network_activity.fake import FakeNetworkActivityNotifier

__all__ = ["DefaultNetworkActivityNotifier", "FakeNetworkActivityNotifier"]
