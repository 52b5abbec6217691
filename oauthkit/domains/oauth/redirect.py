"""RedirectObserver: resumes a suspended handshake when a redirect arrives.

The embedding application calls handle_redirect(url) when the OS or browser
reports the callback URL. The observer holds at most one pending registration
and delivers each redirect to it at most once.
"""

import threading
from typing import Callable, Dict, Optional
from urllib.parse import urlsplit

from oauthkit.core.logging import logger
from oauthkit.domains.oauth.encoding import parameters_from_query_string

RedirectHandler = Callable[[str], None]


def parameters_from_redirect(url: str) -> Dict[str, str]:
    """Merge query and fragment parameters of a redirect URL.

    Providers put tokens in either place. On conflicting keys the query
    wins. A `token` parameter is mirrored into `oauth_token`.
    """
    parts = urlsplit(url)
    params = parameters_from_query_string(parts.fragment) if parts.fragment else {}
    params.update(parameters_from_query_string(parts.query))
    if "token" in params:
        params["oauth_token"] = params["token"]
    return params


class RedirectRegistration:
    """A pending redirect handler."""

    def __init__(
        self, handler: RedirectHandler, on_discard: Optional[Callable[[], None]] = None
    ) -> None:
        self.handler = handler
        self.on_discard = on_discard


class RedirectObserver:
    """Single-slot subscription point for incoming redirects.

    Registering while another registration is pending replaces it; the
    displaced registration's `on_discard` callback runs so its owner can
    report the cancellation.
    """

    def __init__(self) -> None:
        self._pending: Optional[RedirectRegistration] = None
        self._lock = threading.Lock()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def observe_callback(
        self, handler: RedirectHandler, on_discard: Optional[Callable[[], None]] = None
    ) -> RedirectRegistration:
        """Register `handler` for the next redirect."""
        registration = RedirectRegistration(handler, on_discard)
        with self._lock:
            previous, self._pending = self._pending, registration
        if previous is not None:
            logger.warning("[RedirectObserver] Replacing a pending redirect registration")
            if previous.on_discard is not None:
                previous.on_discard()
        return registration

    def remove_observer(self, registration: Optional[RedirectRegistration] = None) -> bool:
        """Clear the pending registration (only if it is `registration`, when given).

        Returns:
            True if a registration was removed.
        """
        with self._lock:
            if self._pending is None:
                return False
            if registration is not None and self._pending is not registration:
                return False
            self._pending = None
        return True

    def handle_redirect(self, url: str) -> bool:
        """Deliver `url` to the pending registration and clear it.

        Returns:
            False if nothing was registered; the redirect is dropped.
        """
        with self._lock:
            registration, self._pending = self._pending, None
        if registration is None:
            logger.warning("[RedirectObserver] Dropping redirect: no pending registration")
            return False
        registration.handler(url)
        return True

