"""Configuration module for oauthkit.

Usage:
    from oauthkit.core.config import settings, ParamsLocation

    if settings.PARAMS_LOCATION == ParamsLocation.REQUEST_URI_QUERY:
        ...
"""

from oauthkit.core.config.enums import ParamsLocation
from oauthkit.core.config.settings import Settings

__all__ = [
    "ParamsLocation",
    "Settings",
    "settings",
]

# Singleton settings instance
settings = Settings()
