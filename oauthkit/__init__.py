"""OAuth client engine: three-legged OAuth1 handshake and signed HTTP requests."""

from oauthkit.core.exceptions import (
    ConfigurationError,
    EncodingError,
    MissingTokenError,
    OAuthKitException,
    RequestCancelledError,
    RequestError,
    TokenExpiredError,
    UnbalancedActivityCallError,
)
from oauthkit.domains.credentials import Credential, CredentialVersion, SignatureMethod
from oauthkit.domains.oauth import (
    OAuth1Flow,
    OAuthClient,
    OAuthResponse,
    ParamsLocation,
    RedirectObserver,
    SignedRequest,
)

__all__ = [
    "ConfigurationError",
    "Credential",
    "CredentialVersion",
    "EncodingError",
    "MissingTokenError",
    "OAuth1Flow",
    "OAuthClient",
    "OAuthKitException",
    "OAuthResponse",
    "ParamsLocation",
    "RedirectObserver",
    "RequestCancelledError",
    "RequestError",
    "SignatureMethod",
    "SignedRequest",
    "TokenExpiredError",
    "UnbalancedActivityCallError",
]
