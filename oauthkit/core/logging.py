"""Logging for oauthkit.

Usage:
    from oauthkit.core.logging import logger

    flow_logger = logger.with_prefix("OAuth1: ").with_context(flow_id=flow_id)
    flow_logger.info("Requesting token")
"""

import logging
from typing import Any, Dict, MutableMapping, Optional, Tuple

from oauthkit.core.config import settings

LOGGER_NAME = "oauthkit"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextualLogger(logging.LoggerAdapter):
    """Logger that carries key/value context and an optional message prefix.

    Derived loggers are cheap to create and never mutate their parent.
    """

    def __init__(
        self,
        base_logger: logging.Logger,
        context: Optional[Dict[str, Any]] = None,
        prefix: str = "",
    ) -> None:
        """Wrap `base_logger` with the given context and prefix."""
        super().__init__(base_logger, dict(context or {}))
        self.prefix = prefix

    @property
    def context(self) -> Dict[str, Any]:
        """Copy of the attached context."""
        return dict(self.extra)

    def with_context(self, **context: Any) -> "ContextualLogger":
        """Return a new logger with `context` merged into the current one."""
        merged = {**self.extra, **context}
        return ContextualLogger(self.logger, merged, self.prefix)

    def with_prefix(self, prefix: str) -> "ContextualLogger":
        """Return a new logger that prepends `prefix` to every message."""
        return ContextualLogger(self.logger, dict(self.extra), self.prefix + prefix)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        """Add prefix and render context as `key=value` pairs after the message."""
        if self.extra:
            rendered = " ".join(f"{k}={v}" for k, v in self.extra.items())
            msg = f"{self.prefix}{msg} [{rendered}]"
        else:
            msg = f"{self.prefix}{msg}"
        return msg, kwargs


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the package logger with a stream handler.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)

    Returns:
        The configured 'oauthkit' logger
    """
    base = logging.getLogger(LOGGER_NAME)
    base.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper()))
    if not base.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        base.addHandler(handler)
    return base


logger = ContextualLogger(logging.getLogger(LOGGER_NAME))
