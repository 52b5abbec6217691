"""Value types for the OAuth domain.

These live in a separate module to avoid circular imports between the
client, the request and the flow.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from oauthkit.core.config.enums import ParamsLocation
from oauthkit.core.exceptions import OAuthKitException
from oauthkit.core.protocols.transport import NetworkRequest, NetworkResponse

__all__ = [
    "BODY_METHODS",
    "FailureHandler",
    "HttpMethod",
    "OAuthResponse",
    "Parameters",
    "ParamsLocation",
    "SuccessHandler",
]

Parameters = Dict[str, Any]


class HttpMethod(str, Enum):
    """HTTP methods the client issues."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"


# Methods whose parameters travel in a form-encoded body.
BODY_METHODS = frozenset({HttpMethod.POST.value, HttpMethod.PUT.value, HttpMethod.PATCH.value})


@dataclass
class OAuthResponse:
    """Successful response of a SignedRequest."""

    data: bytes
    response: NetworkResponse
    request: Optional[NetworkRequest] = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def data_string(self, encoding: str = "utf-8") -> Optional[str]:
        """Decode `data`, or None if it is not valid in `encoding`."""
        try:
            return self.data.decode(encoding)
        except UnicodeDecodeError:
            return None

    @property
    def string(self) -> Optional[str]:
        """`data` decoded as UTF-8."""
        return self.data_string()

    def json(self) -> Any:
        """Parse `data` as JSON."""
        return json.loads(self.data)


SuccessHandler = Callable[[OAuthResponse], None]
FailureHandler = Callable[[OAuthKitException], None]
