"""OAuth domain: signing, signed requests, redirect handling and the OAuth1 handshake."""

from oauthkit.domains.oauth.authorize_url import BrowserAuthorizeURLHandler
from oauthkit.domains.oauth.client import OAuthClient
from oauthkit.domains.oauth.oauth1_flow import FlowState, OAuth1Flow
from oauthkit.domains.oauth.protocols import AuthorizeURLHandler
from oauthkit.domains.oauth.redirect import RedirectObserver, parameters_from_redirect
from oauthkit.domains.oauth.request import RequestState, SignedRequest
from oauthkit.domains.oauth.signer import RequestSigner
from oauthkit.domains.oauth.types import HttpMethod, OAuthResponse, ParamsLocation

__all__ = [
    "AuthorizeURLHandler",
    "BrowserAuthorizeURLHandler",
    "FlowState",
    "HttpMethod",
    "OAuth1Flow",
    "OAuthClient",
    "OAuthResponse",
    "ParamsLocation",
    "RedirectObserver",
    "RequestSigner",
    "RequestState",
    "SignedRequest",
    "parameters_from_redirect",
]
