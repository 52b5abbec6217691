"""Credential domain."""

from oauthkit.domains.credentials.credential import (
    Credential,
    CredentialVersion,
    SignatureMethod,
)

__all__ = ["Credential", "CredentialVersion", "SignatureMethod"]
