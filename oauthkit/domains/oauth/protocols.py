"""Protocols for OAuth domain dependencies."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AuthorizeURLHandler(Protocol):
    """Presents the provider's authorize URL to the user.

    Fire-and-forget: the result comes back later through
    RedirectObserver.handle_redirect().
    """

    def handle(self, url: str) -> None:
        """Open or otherwise present `url`."""
        ...
