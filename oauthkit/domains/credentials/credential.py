"""Credential: the keys and tokens a client signs with.

A Credential has no behaviour beyond the expiry check. The authorization flow
is the only code that writes its token fields; the embedding application is
responsible for persisting it (see to_dict/from_dict).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class CredentialVersion(str, Enum):
    """Which signing scheme the credential is used with."""

    OAUTH1 = "oauth1"
    OAUTH2 = "oauth2"


class SignatureMethod(str, Enum):
    """OAuth1 signature methods (RFC 5849 section 3.4)."""

    HMAC_SHA1 = "HMAC-SHA1"
    RSA_SHA1 = "RSA-SHA1"
    PLAINTEXT = "PLAINTEXT"


@dataclass
class Credential:
    """Mutable bag of keys, tokens and secrets.

    OAuth1 uses consumer key/secret plus oauth_token/oauth_token_secret.
    OAuth2 uses oauth_token as the access token, oauth_refresh_token and
    oauth_token_expires_at.
    """

    consumer_key: str = ""
    consumer_secret: str = field(default="", repr=False)
    oauth_token: str = ""
    oauth_token_secret: str = field(default="", repr=False)
    oauth_verifier: str = ""
    oauth_refresh_token: str = field(default="", repr=False)
    oauth_token_expires_at: Optional[datetime] = None
    version: CredentialVersion = CredentialVersion.OAUTH1
    signature_method: SignatureMethod = SignatureMethod.HMAC_SHA1
    rsa_private_key: Optional[str] = field(default=None, repr=False)  # PEM, RSA-SHA1 only

    def is_token_expired(self, now: Optional[datetime] = None) -> bool:
        """True iff an expiry is set and has passed.

        Naive expiry timestamps are treated as UTC.
        """
        if self.oauth_token_expires_at is None:
            return False
        expires_at = self.oauth_token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= (now or datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "consumer_key": self.consumer_key,
            "consumer_secret": self.consumer_secret,
            "oauth_token": self.oauth_token,
            "oauth_token_secret": self.oauth_token_secret,
            "oauth_verifier": self.oauth_verifier,
            "oauth_refresh_token": self.oauth_refresh_token,
            "oauth_token_expires_at": (
                self.oauth_token_expires_at.isoformat() if self.oauth_token_expires_at else None
            ),
            "version": self.version.value,
            "signature_method": self.signature_method.value,
            "rsa_private_key": self.rsa_private_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        """Inverse of to_dict(). Unknown keys are ignored, missing ones defaulted."""
        expires_at = data.get("oauth_token_expires_at")
        return cls(
            consumer_key=data.get("consumer_key", ""),
            consumer_secret=data.get("consumer_secret", ""),
            oauth_token=data.get("oauth_token", ""),
            oauth_token_secret=data.get("oauth_token_secret", ""),
            oauth_verifier=data.get("oauth_verifier", ""),
            oauth_refresh_token=data.get("oauth_refresh_token", ""),
            oauth_token_expires_at=(
                datetime.fromisoformat(expires_at) if isinstance(expires_at, str) else expires_at
            ),
            version=CredentialVersion(data.get("version", CredentialVersion.OAUTH1.value)),
            signature_method=SignatureMethod(
                data.get("signature_method", SignatureMethod.HMAC_SHA1.value)
            ),
            rsa_private_key=data.get("rsa_private_key"),
        )
