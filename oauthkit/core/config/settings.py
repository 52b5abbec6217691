"""Settings for the OAuth client engine.

Loaded from environment variables prefixed with ``OAUTHKIT_``:
    OAUTHKIT_LOG_LEVEL=DEBUG
    OAUTHKIT_ALLOW_MISSING_OAUTH_VERIFIER=true
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oauthkit.core.config.enums import ParamsLocation


class Settings(BaseSettings):
    """Process-wide defaults. Clients and flows copy these on construction."""

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT_",
        extra="ignore",
    )

    LOG_LEVEL: str = Field("INFO", description="Level for the 'oauthkit' logger")
    HTTP_TIMEOUT_SECONDS: float = Field(
        60.0, gt=0, description="Default timeout applied to transport requests"
    )
    PARAMS_LOCATION: ParamsLocation = Field(
        ParamsLocation.AUTHORIZATION_HEADER,
        description="Where signed OAuth parameters are placed",
    )
    ALLOW_MISSING_OAUTH_VERIFIER: bool = Field(
        False, description="Accept redirects that carry no oauth_verifier"
    )
    ADD_CALLBACK_URL_TO_AUTHORIZE_URL: bool = Field(
        False, description="Append oauth_callback to the authorize URL"
    )
    USE_RFC3986_TO_ENCODE_TOKEN: bool = Field(
        False, description="Encode the request token with RFC 3986 instead of query rules"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        """Upper-case and validate the log level name."""
        level = value.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}:
            raise ValueError(f"Unknown log level: {value}")
        return level
