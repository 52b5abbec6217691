"""Default authorize-URL presenter: the system web browser."""

import webbrowser

from oauthkit.core.logging import logger


class BrowserAuthorizeURLHandler:
    """Open the authorize URL with the `webbrowser` module."""

    def handle(self, url: str) -> None:
        logger.info("[OAuth1] Opening browser for user authorization")
        if not webbrowser.open(url):
            logger.warning(f"[OAuth1] Could not open a browser; visit {url}")
