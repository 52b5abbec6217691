"""Percent-encoding and URL helpers shared by the signer, client and flow.

Reference: RFC 3986 section 2.3 (unreserved characters) and RFC 5849
section 3.6 (OAuth percent-encoding).
"""

from typing import Dict, Iterable, List, Tuple
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

# Characters the URL query component allows unescaped (besides unreserved).
QUERY_ALLOWED = "!$&'()*+,;=:@/?~"

DEFAULT_PORTS = {"http": 80, "https": 443}


def percent_encode(value: object) -> str:
    """Percent-encode a value according to RFC 3986.

    Encodes all characters except unreserved: A-Z, a-z, 0-9, -, ., _, ~
    """
    return quote(str(value), safe="~")


def encode_token(token: str, use_rfc3986: bool) -> str:
    """Encode a request token for the authorize URL.

    The legacy mode only escapes what a URL query cannot carry, which some
    providers expect; RFC 3986 mode escapes every reserved character.
    """
    if use_rfc3986:
        return percent_encode(token)
    return quote(token, safe=QUERY_ALLOWED)


def parameters_from_query_string(query: str) -> Dict[str, str]:
    """Parse `a=1&b=2` into a dict, percent-decoding keys and values.

    Blank values are kept; for repeated keys the last one wins.
    """
    return dict(parse_qsl(query or "", keep_blank_values=True))


def url_query_pairs(url: str) -> List[Tuple[str, str]]:
    """Decoded (key, value) pairs of the URL's query string, in order."""
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


def form_encode(pairs: Iterable[Tuple[str, object]]) -> str:
    """RFC 3986 encode pairs as `k=v&k2=v2`, preserving order."""
    return "&".join(f"{percent_encode(k)}={percent_encode(v)}" for k, v in pairs)


def append_query(url: str, pairs: Iterable[Tuple[str, object]]) -> str:
    """Append pairs to the URL's query string, keeping any existing query."""
    encoded = form_encode(pairs)
    if not encoded:
        return url
    parts = urlsplit(url)
    query = f"{parts.query}&{encoded}" if parts.query else encoded
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def normalized_base_url(url: str) -> str:
    """Base string URI per RFC 5849 section 3.4.1.2.

    Lower-cases scheme and host, drops the default port, query and fragment.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    if parts.port is not None and parts.port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"
    return f"{scheme}://{host}{parts.path or '/'}"


def is_valid_url(url: str) -> bool:
    """True for absolute URLs with a scheme and a host."""
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError for a malformed port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc) and " " not in url
