"""SignedRequest: one in-flight HTTP exchange.

States: IDLE -> IN_FLIGHT -> SUCCEEDED | FAILED | CANCELLED.

A request reports exactly one outcome and pairs network_activity_started()
with exactly one network_activity_ended(). Handlers and activity calls go
through the execution context: on completion the handler is dispatched first
and the activity end second, so a handler observes the pre-decrement count.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Callable, Optional

from oauthkit.core.exceptions import (
    OAuthKitException,
    RequestCancelledError,
    RequestError,
    ResponseStatusError,
    TokenExpiredError,
    UnbalancedActivityCallError,
)
from oauthkit.core.execution import EventLoopExecutionContext, ExecutionContext
from oauthkit.core.logging import logger
from oauthkit.core.protocols.network_activity import NetworkActivityNotifier
from oauthkit.core.protocols.transport import (
    NetworkRequest,
    NetworkResponse,
    TransportHandler,
    TransportOperation,
)
from oauthkit.domains.oauth.encoding import normalized_base_url
from oauthkit.domains.oauth.types import FailureHandler, OAuthResponse, SuccessHandler

# Markers providers put in 401 bodies when the access token is no longer valid.
EXPIRED_TOKEN_MARKERS = ("expired", "invalid_token")

ResponseClassifier = Callable[
    [Optional[bytes], Optional[NetworkResponse], Optional[BaseException], NetworkRequest],
    Optional[OAuthKitException],
]


class RequestState(str, Enum):
    """Lifecycle of a SignedRequest."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True once an outcome has been decided."""
        return self in (RequestState.SUCCEEDED, RequestState.FAILED, RequestState.CANCELLED)


def is_cancellation(error: BaseException) -> bool:
    """True for the cancellation signals a transport may report."""
    return isinstance(error, (asyncio.CancelledError, RequestCancelledError))


def default_response_classifier(
    data: Optional[bytes],
    response: Optional[NetworkResponse],
    error: Optional[BaseException],
    request: NetworkRequest,
) -> Optional[OAuthKitException]:
    """Map a transport completion to an error, or None for success.

    Precedence: transport cancellation, transport error, non-2xx status.
    A 401 whose body mentions an expired or invalid token is a TokenExpiredError.
    """
    if error is not None:
        if is_cancellation(error):
            return RequestCancelledError()
        if isinstance(error, OAuthKitException) and not isinstance(error, ResponseStatusError):
            return error
        return RequestError(error, request)

    if response is None:
        return RequestError(OAuthKitException("No response received"), request)

    status_code = response.status_code
    if 200 <= status_code < 300:
        return None

    body = data or b""
    status_error = ResponseStatusError(status_code, body, response.headers)
    if status_code == 401:
        text = body.decode("utf-8", errors="replace").lower()
        if any(marker in text for marker in EXPIRED_TOKEN_MARKERS):
            return TokenExpiredError(status_error)
    return RequestError(status_error, request)


class SignedRequest:
    """A signed request bound to a transport, a notifier and an execution context.

    Usage:
        request = SignedRequest(network_request, transport=transport)
        request.start(success=on_success, failure=on_failure)
        ...
        request.cancel()
    """

    def __init__(
        self,
        request: NetworkRequest,
        *,
        transport: TransportHandler,
        network_activity_notifier: Optional[NetworkActivityNotifier] = None,
        execution_context: Optional[ExecutionContext] = None,
        response_classifier: ResponseClassifier = default_response_classifier,
    ) -> None:
        """Initialize an idle request.

        Args:
            request: The already-signed request to send.
            transport: Engine that performs the exchange.
            network_activity_notifier: Receives one start and one end per flight.
            execution_context: Where handlers and activity calls run.
            response_classifier: Maps transport completions to outcomes.
        """
        self.request = request
        self.transport = transport
        self.network_activity_notifier = network_activity_notifier
        self.execution_context = execution_context or EventLoopExecutionContext()
        self.response_classifier = response_classifier

        self._state = RequestState.IDLE
        self._lock = threading.Lock()
        self._operation: Optional[TransportOperation] = None
        self._counting = False
        self._reported = False
        self._success: Optional[SuccessHandler] = None
        self._failure: Optional[FailureHandler] = None
        self._logger = logger.with_prefix("[SignedRequest] ").with_context(
            method=request.method, url=normalized_base_url(request.url)
        )

    @property
    def state(self) -> RequestState:
        """Current lifecycle state."""
        return self._state

    def start(
        self,
        success: Optional[SuccessHandler] = None,
        failure: Optional[FailureHandler] = None,
    ) -> "SignedRequest":
        """Send the request. Calling start() on a started request is a no-op.

        Starting a request that was cancelled while idle reports
        RequestCancelledError to `failure` without touching the network.
        """
        with self._lock:
            if self._state == RequestState.CANCELLED and not self._reported:
                self._success, self._failure = success, failure
                self._reported = True
                report_cancelled = True
            elif self._state != RequestState.IDLE:
                return self
            else:
                self._state = RequestState.IN_FLIGHT
                self._success, self._failure = success, failure
                report_cancelled = False

        if report_cancelled:
            self._dispatch_failure(RequestCancelledError())
            return self

        try:
            operation = self.transport.data_operation(self.request, self._on_transport_complete)
        except OAuthKitException as e:
            self._logger.warning(f"Transport refused request: {e}")
            with self._lock:
                self._state = RequestState.FAILED
                self._reported = True
            self._dispatch_failure(e)
            return self

        with self._lock:
            self._operation = operation
            if self._state != RequestState.IN_FLIGHT:
                # Completed or cancelled synchronously inside data_operation().
                return self
            self._counting = self.network_activity_notifier is not None
            if self._counting:
                self._dispatch(self._activity_started)

        self._logger.debug("Dispatching")
        try:
            operation.resume()
        except Exception as e:
            self._logger.warning(f"Transport failed to resume: {e!r}")
            with self._lock:
                if self._state != RequestState.IN_FLIGHT:
                    return self
                self._state = RequestState.FAILED
                self._reported = True
            self._finish(RequestError(e, self.request), None)
        return self

    def cancel(self) -> None:
        """Cancel the request. Idempotent; a no-op once the request has finished."""
        with self._lock:
            if self._state == RequestState.IDLE:
                self._state = RequestState.CANCELLED
                return
            if self._state != RequestState.IN_FLIGHT:
                return
            self._state = RequestState.CANCELLED
            self._reported = True
            operation = self._operation

        self._logger.debug("Cancelled")
        if operation is not None:
            operation.cancel()
        self._finish(RequestCancelledError(), None)

    def _on_transport_complete(
        self,
        data: Optional[bytes],
        response: Optional[NetworkResponse],
        error: Optional[BaseException],
    ) -> None:
        with self._lock:
            if self._state != RequestState.IN_FLIGHT:
                return
            try:
                outcome = self.response_classifier(data, response, error, self.request)
            except Exception as e:
                self._logger.error(f"Response classifier raised: {e!r}")
                outcome = RequestError(e, self.request)
            if outcome is None:
                self._state = RequestState.SUCCEEDED
            elif isinstance(outcome, RequestCancelledError):
                self._state = RequestState.CANCELLED
            else:
                self._state = RequestState.FAILED
            self._reported = True

        if outcome is None:
            self._logger.debug(f"Completed with status {response.status_code}")
            result = OAuthResponse(data=data or b"", response=response, request=self.request)
            self._finish(None, result)
        else:
            self._logger.warning(f"Failed: {outcome}")
            self._finish(outcome, None)

    def _finish(self, error: Optional[OAuthKitException], result: Optional[OAuthResponse]) -> None:
        if error is None:
            self._dispatch(lambda: self._invoke(self._success, result))
        else:
            self._dispatch_failure(error)
        if self._counting:
            self._dispatch(self._activity_ended)

    def _dispatch_failure(self, error: OAuthKitException) -> None:
        self._dispatch(lambda: self._invoke(self._failure, error))

    def _dispatch(self, callback: Callable[[], None]) -> None:
        self.execution_context(callback)

    def _invoke(self, handler, value) -> None:
        if handler is None:
            return
        try:
            handler(value)
        except Exception as e:
            self._logger.error(f"Handler raised: {e}", exc_info=True)

    def _activity_started(self) -> None:
        self.network_activity_notifier.network_activity_started()

    def _activity_ended(self) -> None:
        try:
            self.network_activity_notifier.network_activity_ended()
        except UnbalancedActivityCallError:
            self._logger.error("Unbalanced network activity end")
            raise
