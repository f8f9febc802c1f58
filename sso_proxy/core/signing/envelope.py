"""
Signed Request Envelope

Single entry point for signing a manual-login request to the identity server.

Pipeline (no retries, first failure aborts):
    import key -> timestamp -> nonce -> body hash -> canonical string -> sign

Usage:
    credentials = SigningCredentials(private_key_pem=pem, key_id="client-key-1")
    envelope = sign_manual_request("POST", "https://sso.example.com/api/public/login",
                                   {"identifier": "...", "password": "..."}, credentials)
    headers.update(envelope.to_headers(credentials.key_id))
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from sso_proxy.core.signing.digest import (
    DEFAULT_PATH_PREFIX,
    build_canonical_string,
    compute_body_hash,
)
from sso_proxy.core.signing.errors import ConfigurationError
from sso_proxy.core.signing.keys import import_private_key
from sso_proxy.core.signing.nonce import generate_nonce, generate_timestamp
from sso_proxy.core.signing.provider import CryptoProvider
from sso_proxy.core.signing.signer import sign

logger = logging.getLogger(__name__)


# Signed header names
HEADER_TIMESTAMP = "X-Timestamp"
HEADER_SIGNATURE = "X-Signature"
HEADER_KEY_ID = "X-Key-Id"
HEADER_NONCE = "X-Nonce"

# Caller-supplied identification headers
HEADER_APP_IDENTIFIER = "X-App-Identifier"
HEADER_API_KEY = "APIKey"


@dataclass(frozen=True)
class SigningCredentials:
    """Key material for manual-login signing. The PEM never appears in repr."""
    private_key_pem: str = field(repr=False)
    key_id: str

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If key id or private key is missing
        """
        if not self.key_id:
            raise ConfigurationError("Signing key id is not configured (KEY_ID)")
        if not self.private_key_pem or not self.private_key_pem.strip():
            raise ConfigurationError("Signing private key is not configured (PRIVATE_KEY_PEM)")


@dataclass(frozen=True)
class SigningRequest:
    """
    A request to be signed.

    Attributes:
        method: HTTP verb
        url: Absolute URL as sent to the identity server
        body: JSON-like body, or None
        key_id: Key identifier registered with the identity server
        private_key_pem: PKCS8 PEM private key
    """
    method: str
    url: str
    body: Optional[Any] = field(default=None, repr=False)
    key_id: str = ""
    private_key_pem: str = field(default="", repr=False)

    @property
    def credentials(self) -> SigningCredentials:
        return SigningCredentials(private_key_pem=self.private_key_pem, key_id=self.key_id)


@dataclass(frozen=True)
class SignedEnvelope:
    """
    Result of signing a request.

    Attributes:
        timestamp: ISO-8601 UTC, whole seconds (".000Z")
        signature: Base64 RSA-PSS signature
        nonce: UUID v4 string
        body_hash: Base64 SHA-256 of the canonical body
    """
    timestamp: str
    signature: str = field(repr=False)
    nonce: str
    body_hash: str

    def to_headers(self, key_id: str) -> Dict[str, str]:
        """
        Signed headers to attach to the outbound request.

        Returns:
            {"X-Timestamp", "X-Signature", "X-Key-Id", "X-Nonce"}
        """
        return {
            HEADER_TIMESTAMP: self.timestamp,
            HEADER_SIGNATURE: self.signature,
            HEADER_KEY_ID: key_id,
            HEADER_NONCE: self.nonce,
        }


def sign_manual_request(
    method: str,
    url: str,
    body: Optional[Any],
    credentials: SigningCredentials,
    *,
    provider: Optional[CryptoProvider] = None,
    path_prefix: str = DEFAULT_PATH_PREFIX,
    now: Optional[datetime] = None,
) -> SignedEnvelope:
    """
    Sign a manual-login request.

    Args:
        method: HTTP method
        url: Absolute URL (its path must start with path_prefix)
        body: JSON-like body, or None
        credentials: Private key PEM and key id
        provider: Crypto provider (default provider if None)
        path_prefix: Gateway prefix stripped from the signed path
        now: Override for the current time

    Returns:
        SignedEnvelope with timestamp, signature, nonce and body hash

    Raises:
        ConfigurationError: Missing credentials or bad URL
        KeyImportError: Malformed or non-RSA private key
        CanonicalizationError: Body is not JSON-serializable
        SigningError: Cryptographic failure
    """
    credentials.validate()

    key = import_private_key(credentials.private_key_pem, provider=provider)
    timestamp = generate_timestamp(now)
    nonce = generate_nonce(provider=provider)
    body_hash = compute_body_hash(body, provider=provider)

    canonical = build_canonical_string(
        timestamp=timestamp,
        method=method,
        url=url,
        body_hash=body_hash,
        key_id=credentials.key_id,
        nonce=nonce,
        path_prefix=path_prefix,
    )
    signature = sign(key, canonical, provider=provider)

    parts = urlsplit(url)
    logger.debug(
        f"Signed request: method={method.upper()} host={parts.hostname} "
        f"path={parts.path} key_id={credentials.key_id} nonce={nonce}"
    )

    return SignedEnvelope(
        timestamp=timestamp,
        signature=signature,
        nonce=nonce,
        body_hash=body_hash,
    )


def sign_request(
    request: SigningRequest,
    *,
    provider: Optional[CryptoProvider] = None,
    path_prefix: str = DEFAULT_PATH_PREFIX,
    now: Optional[datetime] = None,
) -> SignedEnvelope:
    """Sign a SigningRequest. See sign_manual_request."""
    return sign_manual_request(
        request.method,
        request.url,
        request.body,
        request.credentials,
        provider=provider,
        path_prefix=path_prefix,
        now=now,
    )
