"""OAuth1 three-legged authorization flow.

States:
    IDLE -> REQUESTING_TOKEN -> AWAITING_AUTHORIZATION -> REQUESTING_ACCESS_TOKEN
         -> AUTHORIZED | FAILED | CANCELLED

1. Request token: signed POST to request_token_url with oauth_callback.
2. User authorization: the authorize URL is handed to the presenter and the
   flow suspends until the redirect observer reports the callback URL.
3. Access token: signed POST to access_token_url with oauth_token and
   oauth_verifier.

The flow reports exactly one outcome per authorize() call.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from oauthkit.core.config import settings
from oauthkit.core.exceptions import (
    ConfigurationError,
    EncodingError,
    MissingTokenError,
    OAuthKitException,
    RequestCancelledError,
)
from oauthkit.core.execution import bind_future
from oauthkit.core.logging import logger
from oauthkit.domains.credentials import Credential, CredentialVersion
from oauthkit.domains.oauth.authorize_url import BrowserAuthorizeURLHandler
from oauthkit.domains.oauth.client import Headers, OAuthClient
from oauthkit.domains.oauth.encoding import (
    encode_token,
    is_valid_url,
    parameters_from_query_string,
    percent_encode,
)
from oauthkit.domains.oauth.protocols import AuthorizeURLHandler
from oauthkit.domains.oauth.redirect import (
    RedirectObserver,
    RedirectRegistration,
    parameters_from_redirect,
)
from oauthkit.domains.oauth.request import SignedRequest
from oauthkit.domains.oauth.types import FailureHandler, HttpMethod, OAuthResponse

TokenSuccessHandler = Callable[[Credential, Optional[OAuthResponse], Dict[str, str]], None]

# Callback value for providers that show the verifier to the user instead.
OUT_OF_BAND = "oob"

PARAMETER_KEYS = (
    "consumer_key",
    "consumer_secret",
    "request_token_url",
    "authorize_url",
    "access_token_url",
)


class FlowState(str, Enum):
    """Lifecycle of an OAuth1Flow handshake."""

    IDLE = "idle"
    REQUESTING_TOKEN = "requesting_token"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    REQUESTING_ACCESS_TOKEN = "requesting_access_token"
    AUTHORIZED = "authorized"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True once the handshake can no longer make progress."""
        return self in (FlowState.AUTHORIZED, FlowState.FAILED, FlowState.CANCELLED)


class OAuth1Flow:
    """Drives the OAuth1 handshake and owns the resulting credential.

    Usage:
        flow = OAuth1Flow(
            consumer_key="key",
            consumer_secret="secret",
            request_token_url="https://provider.com/oauth/request_token",
            authorize_url="https://provider.com/oauth/authorize",
            access_token_url="https://provider.com/oauth/access_token",
        )
        flow.authorize("myapp://oauth-callback", success=on_success, failure=on_failure)
        ...
        # when the OS reports the callback URL:
        flow.handle_redirect("myapp://oauth-callback?oauth_token=...&oauth_verifier=...")
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        request_token_url: str = "",
        authorize_url: str = "",
        access_token_url: str = "",
        *,
        client: Optional[OAuthClient] = None,
        authorize_url_handler: Optional[AuthorizeURLHandler] = None,
        redirect_observer: Optional[RedirectObserver] = None,
        allow_missing_oauth_verifier: Optional[bool] = None,
        add_callback_url_to_authorize_url: Optional[bool] = None,
        use_rfc3986_to_encode_token: Optional[bool] = None,
        **client_kwargs: Any,
    ) -> None:
        """Initialize the flow.

        Args:
            consumer_key: Application key issued by the provider.
            consumer_secret: Application secret issued by the provider.
            request_token_url: Step 1 endpoint.
            authorize_url: Step 2 page the user is sent to.
            access_token_url: Step 3 endpoint.
            client: Client to sign and send requests with; built from the keys if omitted.
            authorize_url_handler: Presents the authorize URL (default: system browser).
            redirect_observer: Where the callback URL is reported (default: a new observer).
            allow_missing_oauth_verifier: Accept redirects without oauth_verifier.
            add_callback_url_to_authorize_url: Append oauth_callback to the authorize URL.
            use_rfc3986_to_encode_token: Encode the request token with RFC 3986 rules.
            **client_kwargs: Forwarded to OAuthClient when `client` is omitted.
        """
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.request_token_url = request_token_url
        self.authorize_url = authorize_url
        self.access_token_url = access_token_url

        if client is None:
            client = OAuthClient.from_keys(consumer_key, consumer_secret, **client_kwargs)
        client.credential.version = CredentialVersion.OAUTH1
        self.client = client

        self.authorize_url_handler = authorize_url_handler or BrowserAuthorizeURLHandler()
        self.redirect_observer = redirect_observer or RedirectObserver()

        self.allow_missing_oauth_verifier = _default(
            allow_missing_oauth_verifier, settings.ALLOW_MISSING_OAUTH_VERIFIER
        )
        self.add_callback_url_to_authorize_url = _default(
            add_callback_url_to_authorize_url, settings.ADD_CALLBACK_URL_TO_AUTHORIZE_URL
        )
        self.use_rfc3986_to_encode_token = _default(
            use_rfc3986_to_encode_token, settings.USE_RFC3986_TO_ENCODE_TOKEN
        )

        self._state = FlowState.IDLE
        self._lock = threading.Lock()
        self._request: Optional[SignedRequest] = None
        self._registration: Optional[RedirectRegistration] = None
        self._callback_url = ""
        self._headers: Optional[Headers] = None
        self._success: Optional[TokenSuccessHandler] = None
        self._failure: Optional[FailureHandler] = None
        self._logger = logger.with_prefix("[OAuth1Flow] ").with_context(
            consumer_key=consumer_key
        )

    @classmethod
    def from_parameters(
        cls, parameters: Mapping[str, str], **kwargs: Any
    ) -> Optional["OAuth1Flow"]:
        """Build a flow from the five key/endpoint values, or None if any is missing."""
        if any(key not in parameters for key in PARAMETER_KEYS):
            return None
        return cls(*(parameters[key] for key in PARAMETER_KEYS), **kwargs)

    @property
    def parameters(self) -> Dict[str, str]:
        """Keys and endpoints, in the shape from_parameters() accepts."""
        return {key: getattr(self, key) for key in PARAMETER_KEYS}

    @property
    def credential(self) -> Credential:
        """The client's credential; the flow writes tokens into it."""
        return self.client.credential

    @property
    def state(self) -> FlowState:
        """Current handshake step."""
        return self._state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def authorize(
        self,
        callback_url: str,
        headers: Optional[Headers] = None,
        success: Optional[TokenSuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional["OAuth1Flow"]:
        """Start the handshake.

        Returns:
            The flow itself as the cancellable handle, or None when the call
            was rejected up front (the failure handler still runs).
        """
        if callback_url != OUT_OF_BAND and not is_valid_url(callback_url):
            self._report_to(failure, EncodingError(callback_url))
            return None

        with self._lock:
            if self._state != FlowState.IDLE and not self._state.is_terminal:
                busy = True
            else:
                busy = False
                self._state = FlowState.REQUESTING_TOKEN
                self._callback_url = callback_url
                self._headers = headers
                self._success, self._failure = success, failure
        if busy:
            self._report_to(
                failure, ConfigurationError("Authorization already in progress for this flow")
            )
            return None

        credential = self.credential
        credential.oauth_token = ""
        credential.oauth_token_secret = ""
        credential.oauth_verifier = ""

        self._logger.info("Requesting request token")
        self._send(
            self.request_token_url,
            {"oauth_callback": callback_url},
            self._on_request_token,
        )
        return self

    def cancel(self) -> None:
        """Cancel the handshake. Reports RequestCancelledError once; idempotent."""
        with self._lock:
            if self._state == FlowState.IDLE or self._state.is_terminal:
                return
            self._state = FlowState.CANCELLED
            request, self._request = self._request, None
            registration, self._registration = self._registration, None

        self._logger.info("Cancelled")
        if registration is not None:
            self.redirect_observer.remove_observer(registration)
        if request is not None:
            request.cancel()
        self._report_to(self._failure, RequestCancelledError())

    def handle_redirect(self, url: str) -> bool:
        """Report the callback URL to this flow's redirect observer."""
        return self.redirect_observer.handle_redirect(url)

    async def authorize_async(
        self, callback_url: str, headers: Optional[Headers] = None
    ) -> Tuple[Credential, Optional[OAuthResponse], Dict[str, str]]:
        """Awaitable form of authorize(). Cancelling the awaiting task cancels the flow."""
        future, resolve, reject = bind_future(asyncio.get_running_loop())
        handle = self.authorize(
            callback_url,
            headers,
            success=lambda credential, response, params: resolve(
                (credential, response, params)
            ),
            failure=reject,
        )
        try:
            return await future
        except asyncio.CancelledError:
            if handle is not None:
                handle.cancel()
            raise

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _on_request_token(self, response: OAuthResponse) -> None:
        if self._state != FlowState.REQUESTING_TOKEN:
            return
        params = parameters_from_query_string(response.string or "")
        token = params.get("oauth_token", "")
        if not token:
            self._fail(MissingTokenError("Request token response has no oauth_token"))
            return

        authorize_url = self._build_authorize_url(token)
        if not is_valid_url(authorize_url):
            self._fail(EncodingError(authorize_url))
            return

        with self._lock:
            if self._state != FlowState.REQUESTING_TOKEN:
                return
            self._state = FlowState.AWAITING_AUTHORIZATION
            self._request = None
            credential = self.credential
            credential.oauth_token = token
            credential.oauth_token_secret = params.get("oauth_token_secret", "")

        registration = self.redirect_observer.observe_callback(
            self._on_redirect, on_discard=self._on_registration_discarded
        )
        with self._lock:
            awaiting = self._state == FlowState.AWAITING_AUTHORIZATION
            if awaiting:
                self._registration = registration
        if not awaiting:
            # Cancelled or failed while registering.
            self.redirect_observer.remove_observer(registration)
            return

        self._logger.info("Awaiting user authorization")
        try:
            self.authorize_url_handler.handle(authorize_url)
        except Exception as e:
            self._fail(ConfigurationError(f"Authorize URL handler failed: {e}"))

    def _build_authorize_url(self, token: str) -> str:
        separator = "&" if "?" in self.authorize_url else "?"
        url = (
            f"{self.authorize_url}{separator}"
            f"oauth_token={encode_token(token, self.use_rfc3986_to_encode_token)}"
        )
        if self.add_callback_url_to_authorize_url:
            url += f"&oauth_callback={percent_encode(self._callback_url)}"
        return url

    def _on_redirect(self, url: str) -> None:
        with self._lock:
            if self._state != FlowState.AWAITING_AUTHORIZATION:
                return
            self._registration = None

        params = parameters_from_redirect(url)
        token = params.get("oauth_token", "")
        if not token:
            self._fail(MissingTokenError())
            return

        verifier = params.get("oauth_verifier")
        if verifier is None and not self.allow_missing_oauth_verifier:
            self._fail(
                ConfigurationError(
                    "Missing oauth_verifier. Maybe use allow_missing_oauth_verifier=True"
                )
            )
            return

        with self._lock:
            if self._state != FlowState.AWAITING_AUTHORIZATION:
                return
            self._state = FlowState.REQUESTING_ACCESS_TOKEN
            credential = self.credential
            credential.oauth_token = token
            if verifier is not None:
                credential.oauth_verifier = verifier

        parameters = {"oauth_token": token}
        if not self.allow_missing_oauth_verifier:
            parameters["oauth_verifier"] = verifier

        self._logger.info("Requesting access token")
        self._send(self.access_token_url, parameters, self._on_access_token)

    def _on_access_token(self, response: OAuthResponse) -> None:
        params = parameters_from_query_string(response.string or "")
        with self._lock:
            if self._state != FlowState.REQUESTING_ACCESS_TOKEN:
                return
            self._state = FlowState.AUTHORIZED
            self._request = None
            credential = self.credential
            if "oauth_token" in params:
                credential.oauth_token = params["oauth_token"]
            if "oauth_token_secret" in params:
                credential.oauth_token_secret = params["oauth_token_secret"]

        self._logger.info("Authorized")
        success = self._success
        if success is not None:
            self._invoke(lambda: success(credential, response, params))

    def _on_registration_discarded(self) -> None:
        with self._lock:
            if self._state != FlowState.AWAITING_AUTHORIZATION:
                return
            self._state = FlowState.CANCELLED
            self._registration = None
        self._logger.warning("Redirect registration replaced by another authorization")
        self._report_to(self._failure, RequestCancelledError())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send(
        self,
        url: str,
        parameters: Dict[str, str],
        on_success: Callable[[OAuthResponse], None],
    ) -> None:
        request = self.client.request(
            url,
            HttpMethod.POST,
            parameters,
            self._headers,
            check_token_expiration=False,
            success=on_success,
            failure=self._fail,
        )
        with self._lock:
            if not self._state.is_terminal:
                self._request = request

    def _fail(self, error: OAuthKitException) -> None:
        with self._lock:
            if self._state == FlowState.IDLE or self._state.is_terminal:
                return
            self._state = FlowState.FAILED
            self._request = None
            registration, self._registration = self._registration, None

        if registration is not None:
            self.redirect_observer.remove_observer(registration)
        self._logger.warning(f"Authorization failed: {error}")
        self._report_to(self._failure, error)

    def _report_to(self, failure: Optional[FailureHandler], error: OAuthKitException) -> None:
        if failure is not None:
            self.client.execution_context(lambda: self._invoke(lambda: failure(error)))

    def _invoke(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            self._logger.error(f"Handler raised: {e}", exc_info=True)


def _default(value: Optional[bool], fallback: bool) -> bool:
    return fallback if value is None else value
