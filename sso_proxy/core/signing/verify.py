"""
Signature Verification

Mirror of the identity server's verification of signed manual-login requests.
Used by tests and by the key tooling CLI to check a key pair end to end; the
proxy itself never verifies.

Checks, in order:
    1. All signed headers present
    2. Timestamp format and freshness (±5 minutes)
    3. Nonce format (UUID v4)
    4. Nonce reuse (if a checker is supplied)
    5. Key id matches the expected key
    6. RSA-PSS signature over the rebuilt canonical string
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from sso_proxy.core.signing.digest import (
    DEFAULT_PATH_PREFIX,
    build_canonical_string,
    compute_body_hash,
)
from sso_proxy.core.signing.envelope import (
    HEADER_KEY_ID,
    HEADER_NONCE,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
)
from sso_proxy.core.signing.errors import SigningCoreError
from sso_proxy.core.signing.nonce import is_valid_nonce, parse_timestamp
from sso_proxy.core.signing.signer import PSS_SALT_LENGTH

logger = logging.getLogger(__name__)


# Timestamp tolerance: ±5 minutes
TIMESTAMP_TOLERANCE_SECONDS = 300


class VerificationError(Enum):
    """Enumeration of possible verification failures."""
    MISSING_HEADERS = "missing_headers"
    INVALID_TIMESTAMP_FORMAT = "invalid_timestamp_format"
    TIMESTAMP_TOO_OLD = "timestamp_too_old"
    TIMESTAMP_TOO_NEW = "timestamp_too_new"
    INVALID_NONCE_FORMAT = "invalid_nonce_format"
    NONCE_REUSED = "nonce_reused"
    UNKNOWN_KEY = "unknown_key"
    INVALID_REQUEST = "invalid_request"
    INVALID_SIGNATURE_FORMAT = "invalid_signature_format"
    SIGNATURE_VERIFICATION_FAILED = "signature_verification_failed"


@dataclass
class VerificationResult:
    """
    Result of signature verification.

    Attributes:
        success: Whether verification succeeded
        error: Error type if verification failed
        error_message: Human-readable error message
        key_id: Key id from headers (if present)
        nonce: Nonce from headers (if valid)
    """
    success: bool
    error: Optional[VerificationError] = None
    error_message: Optional[str] = None
    key_id: Optional[str] = None
    nonce: Optional[str] = None

    @classmethod
    def ok(cls, key_id: str, nonce: str) -> "VerificationResult":
        """Create a successful result."""
        return cls(success=True, key_id=key_id, nonce=nonce)

    @classmethod
    def fail(cls, error: VerificationError, message: str, key_id: Optional[str] = None) -> "VerificationResult":
        """Create a failed result."""
        return cls(success=False, error=error, error_message=message, key_id=key_id)


def verify_canonical_signature(
    public_key: RSAPublicKey,
    canonical_string: str,
    signature_b64: str,
    salt_length: int = PSS_SALT_LENGTH,
) -> bool:
    """
    Verify an RSA-PSS signature over a canonical string.

    Returns:
        True if the signature is valid, False otherwise (including bad base64)
    """
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError):
        return False

    try:
        public_key.verify(
            signature,
            canonical_string.encode("utf-8"),
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=salt_length),
            hashes.SHA256(),
        )
    except InvalidSignature:
        return False
    return True


def validate_timestamp(timestamp: datetime, now: Optional[datetime] = None) -> Optional[VerificationError]:
    """
    Validate that timestamp is within the tolerance window.

    Returns:
        VerificationError if out of range, None if valid
    """
    now = now or datetime.now(timezone.utc)
    delta = (now - timestamp).total_seconds()

    if delta > TIMESTAMP_TOLERANCE_SECONDS:
        return VerificationError.TIMESTAMP_TOO_OLD
    if delta < -TIMESTAMP_TOLERANCE_SECONDS:
        return VerificationError.TIMESTAMP_TOO_NEW
    return None


def verify_signed_request(
    public_key: RSAPublicKey,
    method: str,
    url: str,
    body: Optional[Any],
    headers: Mapping[str, str],
    expected_key_id: Optional[str] = None,
    check_nonce_reuse: Optional[Callable[[str], bool]] = None,
    path_prefix: str = DEFAULT_PATH_PREFIX,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """
    Verify a signed request the way the identity server does.

    Args:
        public_key: Public half of the signing key
        method: HTTP method
        url: Absolute URL the request was sent to
        body: Decoded JSON body, or None
        headers: Request headers (exact header names)
        expected_key_id: If set, X-Key-Id must match
        check_nonce_reuse: Optional callback; returns True if the nonce was already used
        path_prefix: Gateway prefix stripped from the signed path
        now: Override for the current time

    Returns:
        VerificationResult with success status and details
    """
    key_id = headers.get(HEADER_KEY_ID)
    timestamp_str = headers.get(HEADER_TIMESTAMP)
    nonce = headers.get(HEADER_NONCE)
    signature_b64 = headers.get(HEADER_SIGNATURE)

    missing = [
        name for name, value in (
            (HEADER_KEY_ID, key_id),
            (HEADER_TIMESTAMP, timestamp_str),
            (HEADER_NONCE, nonce),
            (HEADER_SIGNATURE, signature_b64),
        ) if not value
    ]
    if missing:
        return VerificationResult.fail(
            VerificationError.MISSING_HEADERS,
            f"Missing required headers: {', '.join(missing)}",
            key_id=key_id,
        )

    # 1. Timestamp
    try:
        timestamp = parse_timestamp(timestamp_str)
    except ValueError:
        return VerificationResult.fail(
            VerificationError.INVALID_TIMESTAMP_FORMAT,
            f"Invalid timestamp format: '{timestamp_str}'",
            key_id=key_id,
        )
    ts_error = validate_timestamp(timestamp, now)
    if ts_error is not None:
        return VerificationResult.fail(ts_error, f"Timestamp outside tolerance: {timestamp_str}", key_id=key_id)

    # 2. Nonce
    if not is_valid_nonce(nonce):
        return VerificationResult.fail(
            VerificationError.INVALID_NONCE_FORMAT,
            f"Invalid nonce format: '{nonce}' (expected UUID v4)",
            key_id=key_id,
        )
    if check_nonce_reuse is not None and check_nonce_reuse(nonce):
        return VerificationResult.fail(
            VerificationError.NONCE_REUSED,
            f"Nonce already used: '{nonce}'",
            key_id=key_id,
        )

    # 3. Key id
    if expected_key_id is not None and key_id != expected_key_id:
        return VerificationResult.fail(
            VerificationError.UNKNOWN_KEY,
            f"Unexpected key id: '{key_id}'",
            key_id=key_id,
        )

    # 4. Rebuild canonical string and verify
    try:
        body_hash = compute_body_hash(body)
        canonical = build_canonical_string(
            timestamp=timestamp_str,
            method=method,
            url=url,
            body_hash=body_hash,
            key_id=key_id,
            nonce=nonce,
            path_prefix=path_prefix,
        )
    except SigningCoreError as e:
        return VerificationResult.fail(VerificationError.INVALID_REQUEST, e.message, key_id=key_id)

    if not verify_canonical_signature(public_key, canonical, signature_b64):
        logger.debug(f"Signature verification failed for key_id={key_id}")
        return VerificationResult.fail(
            VerificationError.SIGNATURE_VERIFICATION_FAILED,
            "Signature verification failed",
            key_id=key_id,
        )

    return VerificationResult.ok(key_id=key_id, nonce=nonce)
