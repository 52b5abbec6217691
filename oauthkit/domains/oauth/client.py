"""OAuthClient: signs and dispatches authenticated HTTP requests.

Every call returns the started SignedRequest (the cancellable handle), or
None when the call was rejected up front. In both cases the outcome reaches
exactly one of the success/failure handlers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Union

from oauthkit.adapters.network_activity import DefaultNetworkActivityNotifier
from oauthkit.adapters.transport import HttpxTransportHandler
from oauthkit.core.config import ParamsLocation, settings
from oauthkit.core.exceptions import (
    ConfigurationError,
    EncodingError,
    OAuthKitException,
    TokenExpiredError,
)
from oauthkit.core.execution import EventLoopExecutionContext, ExecutionContext, bind_future
from oauthkit.core.logging import logger
from oauthkit.core.protocols.network_activity import NetworkActivityNotifier
from oauthkit.core.protocols.transport import NetworkRequest, TransportHandler
from oauthkit.domains.credentials import Credential, CredentialVersion
from oauthkit.domains.oauth.encoding import is_valid_url
from oauthkit.domains.oauth.request import (
    ResponseClassifier,
    SignedRequest,
    default_response_classifier,
)
from oauthkit.domains.oauth.signer import RequestSigner
from oauthkit.domains.oauth.types import (
    FailureHandler,
    HttpMethod,
    OAuthResponse,
    Parameters,
    SuccessHandler,
)

Headers = Dict[str, str]


class OAuthClient:
    """Signs requests with a Credential and sends them through a transport."""

    def __init__(
        self,
        credential: Credential,
        *,
        transport: Optional[TransportHandler] = None,
        network_activity_notifier: Optional[NetworkActivityNotifier] = None,
        execution_context: Optional[ExecutionContext] = None,
        signer: Optional[RequestSigner] = None,
        params_location: Optional[ParamsLocation] = None,
        response_classifier: ResponseClassifier = default_response_classifier,
    ) -> None:
        """Initialize the client.

        Args:
            credential: Credential owned by this client.
            transport: HTTP engine (default: HttpxTransportHandler).
            network_activity_notifier: Activity counter (default: DefaultNetworkActivityNotifier).
            execution_context: Where handlers run (default: the asyncio event loop).
            signer: Request signer (default: random nonce, current time).
            params_location: Placement of OAuth parameters (default: settings.PARAMS_LOCATION).
            response_classifier: Maps transport completions to outcomes.
        """
        self.credential = credential
        self.transport = transport or HttpxTransportHandler()
        self.network_activity_notifier = (
            network_activity_notifier or DefaultNetworkActivityNotifier()
        )
        self.execution_context = execution_context or EventLoopExecutionContext()
        self.signer = signer or RequestSigner()
        self.params_location = params_location or settings.PARAMS_LOCATION
        self.response_classifier = response_classifier

    @classmethod
    def from_keys(
        cls,
        consumer_key: str,
        consumer_secret: str,
        *,
        oauth_token: str = "",
        oauth_token_secret: str = "",
        version: CredentialVersion = CredentialVersion.OAUTH1,
        **kwargs: Any,
    ) -> "OAuthClient":
        """Build a client around a fresh Credential."""
        credential = Credential(
            consumer_key=consumer_key,
            consumer_secret=consumer_secret,
            oauth_token=oauth_token,
            oauth_token_secret=oauth_token_secret,
            version=version,
        )
        return cls(credential, **kwargs)

    # ------------------------------------------------------------------
    # Verb helpers
    # ------------------------------------------------------------------

    def get(
        self,
        url: str,
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional[SignedRequest]:
        """Signed GET; `parameters` go to the query string."""
        return self.request(
            url, HttpMethod.GET, parameters, headers, None, success=success, failure=failure
        )

    def post(
        self,
        url: str,
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        body: Optional[bytes] = None,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional[SignedRequest]:
        """Signed POST. Parameters become the form body unless `body` is given."""
        return self.request(
            url, HttpMethod.POST, parameters, headers, body, success=success, failure=failure
        )

    def put(
        self,
        url: str,
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        body: Optional[bytes] = None,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional[SignedRequest]:
        """Signed PUT."""
        return self.request(
            url, HttpMethod.PUT, parameters, headers, body, success=success, failure=failure
        )

    def delete(
        self,
        url: str,
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional[SignedRequest]:
        """Signed DELETE with parameters in the query string."""
        return self.request(
            url, HttpMethod.DELETE, parameters, headers, None, success=success, failure=failure
        )

    def patch(
        self,
        url: str,
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        body: Optional[bytes] = None,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional[SignedRequest]:
        """Signed PATCH, placed like POST."""
        return self.request(
            url, HttpMethod.PATCH, parameters, headers, body, success=success, failure=failure
        )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    def request(
        self,
        url: str,
        method: Union[HttpMethod, str],
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        body: Optional[bytes] = None,
        *,
        check_token_expiration: bool = True,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> Optional[SignedRequest]:
        """Sign and start a request.

        An expired credential or a request that cannot be built or signed
        fails immediately, without any transport call, and returns None.
        """
        if check_token_expiration and self.credential.is_token_expired():
            logger.warning(f"[OAuthClient] Rejecting request to {url}: token expired")
            self._reject(TokenExpiredError(), failure)
            return None

        try:
            signed = self.make_signed_request(url, method, parameters, headers, body)
        except OAuthKitException as e:
            logger.warning(f"[OAuthClient] Rejecting request: {e}")
            self._reject(e, failure)
            return None

        return signed.start(success=success, failure=failure)

    def make_signed_request(
        self,
        url: str,
        method: Union[HttpMethod, str],
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        body: Optional[bytes] = None,
    ) -> SignedRequest:
        """Build and sign a request without starting it.

        Raises:
            EncodingError: If `url` is not absolute or a form body is not UTF-8.
            ConfigurationError: If `method` is unknown or the credential cannot sign.
        """
        if not is_valid_url(url):
            raise EncodingError(url)

        if isinstance(method, HttpMethod):
            verb = method
        else:
            try:
                verb = HttpMethod(method.upper())
            except ValueError:
                raise ConfigurationError(f"Unsupported HTTP method: {method!r}") from None

        request = self.transport.request(url)
        request.method = verb.value
        for name, value in (headers or {}).items():
            request.set_header(name, value)
        request.body = body

        self.signer.sign_request(request, self.credential, parameters, self.params_location)
        return self._wrap(request)

    def make_request(self, request: NetworkRequest) -> SignedRequest:
        """Sign a pre-built request as-is (no extra parameters) without starting it."""
        self.signer.sign_request(request, self.credential, None, self.params_location)
        return self._wrap(request)

    async def request_async(
        self,
        url: str,
        method: Union[HttpMethod, str] = HttpMethod.GET,
        parameters: Optional[Parameters] = None,
        headers: Optional[Headers] = None,
        body: Optional[bytes] = None,
        *,
        check_token_expiration: bool = True,
    ) -> OAuthResponse:
        """Awaitable form of request(). Raises the failure instead of calling a handler.

        Cancelling the awaiting task cancels the request.
        """
        future, resolve, reject = bind_future(asyncio.get_running_loop())
        handle = self.request(
            url,
            method,
            parameters,
            headers,
            body,
            check_token_expiration=check_token_expiration,
            success=resolve,
            failure=reject,
        )
        try:
            return await future
        except asyncio.CancelledError:
            if handle is not None:
                handle.cancel()
            raise

    def _wrap(self, request: NetworkRequest) -> SignedRequest:
        return SignedRequest(
            request,
            transport=self.transport,
            network_activity_notifier=self.network_activity_notifier,
            execution_context=self.execution_context,
            response_classifier=self.response_classifier,
        )

    def _reject(self, error: OAuthKitException, failure: Optional[FailureHandler]) -> None:
        if failure is not None:
            self.execution_context(lambda: failure(error))
