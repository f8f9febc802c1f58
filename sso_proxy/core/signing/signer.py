"""RSA-PSS signing of canonical strings."""

import base64
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm

from sso_proxy.core.signing.errors import SigningError
from sso_proxy.core.signing.keys import SigningKey
from sso_proxy.core.signing.provider import CryptoProvider


# Fixed PSS salt length in bytes; the verifier uses the same value
PSS_SALT_LENGTH = 32


def sign(key: SigningKey, canonical_string: str, provider: Optional[CryptoProvider] = None) -> str:
    """
    Sign a canonical string.

    Args:
        key: Imported signing key
        canonical_string: Output of build_canonical_string
        provider: Crypto provider (default provider if None)

    Returns:
        Standard base64 of the raw RSA-PSS signature

    Raises:
        SigningError: If the cryptographic primitive fails
    """
    if not isinstance(key, SigningKey):
        raise SigningError(f"Expected SigningKey, got {type(key).__name__}")

    data = canonical_string.encode("utf-8")
    try:
        signature = key.sign(data, PSS_SALT_LENGTH, provider=provider)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"RSA-PSS signing failed: {e}") from e

    return base64.b64encode(signature).decode("ascii")
