"""Configuration enums for type-safe settings.

These enums inherit from str so they round-trip through env vars and JSON.
"""

from enum import Enum


class ParamsLocation(str, Enum):
    """Where the signed OAuth parameters are placed on an outgoing request."""

    AUTHORIZATION_HEADER = "authorization_header"
    REQUEST_URI_QUERY = "request_uri_query"
    REQUEST_BODY = "request_body"
