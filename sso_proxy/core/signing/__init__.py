"""
Request Signing Module

RSA-PSS request signing for manual-login calls to the SSO identity server.
Each request carries X-Timestamp, X-Nonce, X-Key-Id and X-Signature headers
over a canonical string of the request.
"""

from sso_proxy.core.signing.canonical import (
    JsonKind,
    JsonValue,
    canonicalize,
)
from sso_proxy.core.signing.digest import (
    DEFAULT_PATH_PREFIX,
    build_canonical_string,
    compute_body_hash,
)
from sso_proxy.core.signing.envelope import (
    HEADER_API_KEY,
    HEADER_APP_IDENTIFIER,
    HEADER_KEY_ID,
    HEADER_NONCE,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    SignedEnvelope,
    SigningCredentials,
    SigningRequest,
    sign_manual_request,
    sign_request,
)
from sso_proxy.core.signing.errors import (
    CanonicalizationError,
    ConfigurationError,
    KeyImportError,
    SigningCoreError,
    SigningError,
)
from sso_proxy.core.signing.keys import (
    SigningKey,
    generate_keypair,
    import_private_key,
    load_public_key_pem,
    private_key_to_pem,
    public_key_to_pem,
)
from sso_proxy.core.signing.nonce import generate_nonce, generate_timestamp
from sso_proxy.core.signing.provider import CryptoProvider, DefaultCryptoProvider
from sso_proxy.core.signing.signer import PSS_SALT_LENGTH, sign
from sso_proxy.core.signing.verify import (
    VerificationResult,
    verify_canonical_signature,
    verify_signed_request,
)

__all__ = [
    # Canonicalization
    "JsonKind",
    "JsonValue",
    "canonicalize",
    # Digest
    "DEFAULT_PATH_PREFIX",
    "build_canonical_string",
    "compute_body_hash",
    # Envelope
    "HEADER_API_KEY",
    "HEADER_APP_IDENTIFIER",
    "HEADER_KEY_ID",
    "HEADER_NONCE",
    "HEADER_SIGNATURE",
    "HEADER_TIMESTAMP",
    "SignedEnvelope",
    "SigningCredentials",
    "SigningRequest",
    "sign_manual_request",
    "sign_request",
    # Errors
    "CanonicalizationError",
    "ConfigurationError",
    "KeyImportError",
    "SigningCoreError",
    "SigningError",
    # Keys
    "SigningKey",
    "generate_keypair",
    "import_private_key",
    "load_public_key_pem",
    "private_key_to_pem",
    "public_key_to_pem",
    # Replay protection
    "generate_nonce",
    "generate_timestamp",
    # Provider
    "CryptoProvider",
    "DefaultCryptoProvider",
    # Signing / verification
    "PSS_SALT_LENGTH",
    "sign",
    "VerificationResult",
    "verify_canonical_signature",
    "verify_signed_request",
]
