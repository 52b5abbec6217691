"""Shared exceptions module.

Every failure produced by a request or an authorization flow is delivered to
the caller's failure handler as one of these.
"""

from typing import Any, Mapping, Optional


class OAuthKitException(Exception):
    """Base exception for oauthkit."""

    def __init__(self, message: Optional[str] = "OAuth error"):
        """Create a new OAuthKitException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class EncodingError(OAuthKitException):
    """Raised when a URL or form body cannot be encoded into a request."""

    def __init__(self, url_string: str, message: Optional[str] = None):
        """Create a new EncodingError instance.

        Args:
        ----
            url_string (str): The offending URL string.
            message (str, optional): Custom error message.

        """
        self.url_string = url_string
        super().__init__(message or f"Cannot encode URL: {url_string!r}")


class MissingTokenError(OAuthKitException):
    """Raised when a redirect carries no oauth_token."""

    def __init__(self, message: Optional[str] = "Missing oauth_token"):
        """Create a new MissingTokenError instance."""
        super().__init__(message)


class ConfigurationError(OAuthKitException):
    """Raised when the flow or client is misconfigured for what the provider sent."""

    pass


class TokenExpiredError(OAuthKitException):
    """Raised when the credential's token is known to be expired."""

    def __init__(
        self,
        underlying_error: Optional[BaseException] = None,
        message: Optional[str] = "Token expired",
    ):
        """Create a new TokenExpiredError instance.

        Args:
        ----
            underlying_error (BaseException, optional): Error reported by the server, if any.
            message (str, optional): The error message. Has default message.

        """
        self.underlying_error = underlying_error
        super().__init__(message)


class RequestError(OAuthKitException):
    """Raised when the transport fails or the server answers with a non-2xx status."""

    def __init__(self, underlying_error: BaseException, request: Any = None):
        """Create a new RequestError instance.

        Args:
        ----
            underlying_error (BaseException): The transport or status error.
            request (NetworkRequest, optional): The request that was sent.

        """
        self.underlying_error = underlying_error
        self.request = request
        super().__init__(f"Request failed: {underlying_error}")


class RequestCancelledError(OAuthKitException):
    """Raised when a request or flow is cancelled before it completes."""

    def __init__(self, message: Optional[str] = "Request cancelled"):
        """Create a new RequestCancelledError instance."""
        super().__init__(message)


class UnbalancedActivityCallError(OAuthKitException):
    """Raised when network activity is ended more times than it was started."""

    def __init__(
        self,
        message: Optional[str] = "network_activity_ended() called without a matching start",
    ):
        """Create a new UnbalancedActivityCallError instance."""
        super().__init__(message)


class ResponseStatusError(OAuthKitException):
    """Non-2xx HTTP status, carried as the underlying error of a RequestError."""

    def __init__(
        self,
        status_code: int,
        body: bytes = b"",
        headers: Optional[Mapping[str, str]] = None,
    ):
        """Create a new ResponseStatusError instance.

        Args:
        ----
            status_code (int): HTTP status returned by the server.
            body (bytes): Raw response body.
            headers (Mapping, optional): Response headers.

        """
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"HTTP {status_code}: {text[:200]}")


class TransportInvalidatedError(OAuthKitException):
    """Raised when a transport is used after finish_operations_and_invalidate()."""

    def __init__(self, message: Optional[str] = "Transport has been invalidated"):
        """Create a new TransportInvalidatedError instance."""
        super().__init__(message)
