"""
Crypto Provider

The signing core never reaches for a process-wide crypto object. Hashing,
key loading, signing and randomness are reached through a provider passed in
by the caller, so tests can substitute a recording or failing implementation.

DefaultCryptoProvider is backed by the cryptography library and `secrets`.
"""

import hashlib
import secrets
from typing import Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


class CryptoProvider:
    """
    Interface for the cryptographic capabilities the signing core needs.

    Subclasses must implement all four methods.
    """

    def sha256(self, data: bytes) -> bytes:
        """Return the raw 32-byte SHA-256 digest of data."""
        raise NotImplementedError

    def load_pkcs8_der(self, der: bytes) -> RSAPrivateKey:
        """
        Load a PKCS8 DER-encoded private key.

        Raises:
            ValueError, TypeError or UnsupportedAlgorithm on bad input
        """
        raise NotImplementedError

    def sign_pss_sha256(self, private_key: RSAPrivateKey, data: bytes, salt_length: int) -> bytes:
        """Sign data with RSA-PSS (MGF1/SHA-256, SHA-256 digest)."""
        raise NotImplementedError

    def random_bytes(self, n: int) -> bytes:
        """Return n bytes from a cryptographically secure source."""
        raise NotImplementedError


class DefaultCryptoProvider(CryptoProvider):
    """Provider backed by `cryptography` (OpenSSL) and `secrets`."""

    def sha256(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()

    def load_pkcs8_der(self, der: bytes) -> RSAPrivateKey:
        return serialization.load_der_private_key(der, password=None)

    def sign_pss_sha256(self, private_key: RSAPrivateKey, data: bytes, salt_length: int) -> bytes:
        return private_key.sign(
            data,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=salt_length),
            hashes.SHA256(),
        )

    def random_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


default_provider = DefaultCryptoProvider()


def resolve_provider(provider: Optional[CryptoProvider]) -> CryptoProvider:
    """Return provider, or the default provider when None."""
    return provider if provider is not None else default_provider
