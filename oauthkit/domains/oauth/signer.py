"""Request signing for OAuth1 (RFC 5849) and OAuth2 bearer tokens (RFC 6750).

The signer augments a NetworkRequest in place: it places the caller's
parameters (query string or form body), computes the OAuth1 signature over
everything that will be sent, and writes the oauth_* parameters to the
Authorization header, the query string, or the form body.

Nonce and timestamp come from injectable generators so that signatures are
reproducible in tests.
"""

import base64
import hashlib
import hmac
import secrets
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from oauthkit.core.config.enums import ParamsLocation
from oauthkit.core.exceptions import ConfigurationError, EncodingError
from oauthkit.core.protocols.transport import NetworkRequest
from oauthkit.domains.credentials import Credential, CredentialVersion, SignatureMethod
from oauthkit.domains.oauth.encoding import (
    append_query,
    form_encode,
    normalized_base_url,
    percent_encode,
    url_query_pairs,
)
from oauthkit.domains.oauth.types import BODY_METHODS, Parameters

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
OAUTH_VERSION = "1.0"
OAUTH_PREFIX = "oauth_"


def _is_form(content_type: Optional[str]) -> bool:
    if content_type is None:
        return False
    return content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE


class RequestSigner:
    """Signs requests with a Credential."""

    def __init__(
        self,
        nonce_generator: Optional[Callable[[], str]] = None,
        timestamp_generator: Optional[Callable[[], str]] = None,
    ) -> None:
        """Initialize the signer.

        Args:
            nonce_generator: Returns a fresh nonce (default: 32 random bytes, urlsafe).
            timestamp_generator: Returns the Unix timestamp as a string.
        """
        self.nonce_generator = nonce_generator or self._generate_nonce
        self.timestamp_generator = timestamp_generator or self._get_timestamp

    @staticmethod
    def _generate_nonce() -> str:
        """Generate a cryptographically secure random nonce."""
        return secrets.token_urlsafe(32)

    @staticmethod
    def _get_timestamp() -> str:
        """Get current Unix timestamp as string."""
        return str(int(time.time()))

    # ------------------------------------------------------------------
    # OAuth1 primitives
    # ------------------------------------------------------------------

    def build_signature_base_string(
        self, method: str, url: str, params: Iterable[Tuple[str, str]]
    ) -> str:
        """Build the signature base string per RFC 5849 section 3.4.1.

        Format: HTTP_METHOD&URL&NORMALIZED_PARAMS. Pairs are sorted by encoded
        key, then encoded value.
        """
        encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params)
        param_str = "&".join(f"{k}={v}" for k, v in encoded)

        parts = [
            method.upper(),
            percent_encode(normalized_base_url(url)),
            percent_encode(param_str),
        ]
        return "&".join(parts)

    @staticmethod
    def signing_key(consumer_secret: str, token_secret: str = "") -> str:
        """percent_encode(consumer_secret)&percent_encode(token_secret).

        An empty token secret still yields a valid key ending in '&'.
        """
        return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"

    def sign(self, base_string: str, credential: Credential) -> str:
        """Sign the base string with the credential's signature method."""
        method = credential.signature_method
        if method == SignatureMethod.HMAC_SHA1:
            key = self.signing_key(credential.consumer_secret, credential.oauth_token_secret)
            digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1)
            return base64.b64encode(digest.digest()).decode("utf-8")
        if method == SignatureMethod.RSA_SHA1:
            return self._sign_rsa_sha1(base_string, credential)
        if method == SignatureMethod.PLAINTEXT:
            return self.signing_key(credential.consumer_secret, credential.oauth_token_secret)
        raise ConfigurationError(f"Unsupported signature method: {method}")

    @staticmethod
    def _sign_rsa_sha1(base_string: str, credential: Credential) -> str:
        if not credential.rsa_private_key:
            raise ConfigurationError("RSA-SHA1 signing requires credential.rsa_private_key")
        try:
            private_key = serialization.load_pem_private_key(
                credential.rsa_private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Cannot load credential.rsa_private_key: {e}") from e
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ConfigurationError("credential.rsa_private_key is not an RSA key")
        signature = private_key.sign(
            base_string.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1()
        )
        return base64.b64encode(signature).decode("utf-8")

    @staticmethod
    def build_authorization_header(oauth_params: Dict[str, str]) -> str:
        """Build OAuth1 Authorization header.

        Format: OAuth oauth_consumer_key="...", oauth_nonce="...", ...
        """
        sorted_items = sorted(oauth_params.items())
        param_strings = [f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted_items]
        return "OAuth " + ", ".join(param_strings)

    def oauth1_parameters(
        self,
        credential: Credential,
        method: str,
        url: str,
        oauth_overrides: Optional[Dict[str, str]] = None,
        extra_signed_pairs: Iterable[Tuple[str, str]] = (),
        *,
        nonce: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> Dict[str, str]:
        """Compute the oauth_* protocol parameters, oauth_signature included.

        Args:
            credential: Keys and tokens to sign with.
            method: HTTP method.
            url: Final request URL; its query participates in the signature.
            oauth_overrides: oauth_* request parameters (oauth_callback, oauth_verifier, ...).
            extra_signed_pairs: Form body pairs that are sent but not in the URL.
            nonce: Fixed nonce, otherwise generated.
            timestamp: Fixed timestamp, otherwise generated.
        """
        oauth_params = {
            "oauth_consumer_key": credential.consumer_key,
            "oauth_signature_method": credential.signature_method.value,
            "oauth_timestamp": timestamp if timestamp is not None else self.timestamp_generator(),
            "oauth_nonce": nonce if nonce is not None else self.nonce_generator(),
            "oauth_version": OAUTH_VERSION,
        }
        if credential.oauth_token:
            oauth_params["oauth_token"] = credential.oauth_token
        oauth_params.update(oauth_overrides or {})

        signed_pairs: List[Tuple[str, str]] = list(oauth_params.items())
        signed_pairs.extend(url_query_pairs(url))
        signed_pairs.extend(extra_signed_pairs)

        base_string = self.build_signature_base_string(method, url, signed_pairs)
        oauth_params["oauth_signature"] = self.sign(base_string, credential)
        return oauth_params

    # ------------------------------------------------------------------
    # Request augmentation
    # ------------------------------------------------------------------

    def sign_request(
        self,
        request: NetworkRequest,
        credential: Credential,
        parameters: Optional[Parameters] = None,
        params_location: ParamsLocation = ParamsLocation.AUTHORIZATION_HEADER,
        *,
        nonce: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> NetworkRequest:
        """Place `parameters` on the request and sign it with `credential`.

        Parameters go to the form body for POST/PUT/PATCH requests without a
        body of their own, otherwise to the query string. A raw body is only
        signed when its content type is form-encoded.

        Returns:
            The same request, mutated.

        Raises:
            EncodingError: If a form-encoded body is not valid UTF-8.
            ConfigurationError: If the credential cannot sign.
        """
        params = {k: str(v) for k, v in (parameters or {}).items()}
        method = request.method.upper()
        request.method = method

        if credential.version == CredentialVersion.OAUTH2:
            return self._apply_bearer(request, credential, params, params_location)

        oauth_overrides = {k: v for k, v in params.items() if k.startswith(OAUTH_PREFIX)}
        plain = [(k, v) for k, v in params.items() if not k.startswith(OAUTH_PREFIX)]

        form_pairs, url = self._place_parameters(request, plain)

        signed_extra: List[Tuple[str, str]] = list(form_pairs)
        if request.body is not None and _is_form(request.header("Content-Type")):
            try:
                body_text = request.body.decode("utf-8")
            except UnicodeDecodeError as e:
                raise EncodingError(request.url, f"Form body is not valid UTF-8: {e}") from e
            signed_extra.extend(parse_qsl(body_text, keep_blank_values=True))

        oauth_params = self.oauth1_parameters(
            credential,
            method,
            url,
            oauth_overrides,
            signed_extra,
            nonce=nonce,
            timestamp=timestamp,
        )

        if params_location == ParamsLocation.AUTHORIZATION_HEADER:
            request.set_header("Authorization", self.build_authorization_header(oauth_params))
        elif params_location == ParamsLocation.REQUEST_BODY and self._sends_form(request):
            form_pairs.extend(sorted(oauth_params.items()))
        else:
            url = append_query(url, sorted(oauth_params.items()))

        request.url = url
        self._write_form(request, form_pairs)
        return request

    def _apply_bearer(
        self,
        request: NetworkRequest,
        credential: Credential,
        params: Dict[str, str],
        params_location: ParamsLocation,
    ) -> NetworkRequest:
        form_pairs, url = self._place_parameters(request, list(params.items()))
        if params_location == ParamsLocation.AUTHORIZATION_HEADER:
            request.set_header("Authorization", f"Bearer {credential.oauth_token}")
        elif params_location == ParamsLocation.REQUEST_BODY and self._sends_form(request):
            form_pairs.append(("access_token", credential.oauth_token))
        else:
            url = append_query(url, [("access_token", credential.oauth_token)])
        request.url = url
        self._write_form(request, form_pairs)
        return request

    @staticmethod
    def _sends_form(request: NetworkRequest) -> bool:
        content_type = request.header("Content-Type")
        return (
            request.method in BODY_METHODS
            and request.body is None
            and (content_type is None or _is_form(content_type))
        )

    def _place_parameters(
        self, request: NetworkRequest, pairs: List[Tuple[str, str]]
    ) -> Tuple[List[Tuple[str, str]], str]:
        """Split request parameters into form pairs, or fold them into the URL."""
        if self._sends_form(request):
            return list(pairs), request.url
        return [], append_query(request.url, pairs)

    @staticmethod
    def _write_form(request: NetworkRequest, form_pairs: List[Tuple[str, str]]) -> None:
        if not form_pairs:
            return
        request.body = form_encode(form_pairs).encode("utf-8")
        if request.header("Content-Type") is None:
            request.set_header("Content-Type", f"{FORM_CONTENT_TYPE}; charset=utf-8")
