"""Fake authorize-URL presenter for testing."""

from typing import Callable, List, Optional


class FakeAuthorizeURLHandler:
    """Records presented URLs and optionally reacts to them.

    Usage:
        presenter = FakeAuthorizeURLHandler()
        flow = OAuth1Flow(..., authorize_url_handler=presenter)
        ...
        assert presenter.urls[0].startswith("https://provider.com/authorize?")
    """

    def __init__(self, on_handle: Optional[Callable[[str], None]] = None) -> None:
        self.urls: List[str] = []
        self.on_handle = on_handle

    def handle(self, url: str) -> None:
        self.urls.append(url)
        if self.on_handle is not None:
            self.on_handle(url)

    @property
    def last_url(self) -> Optional[str]:
        return self.urls[-1] if self.urls else None
