"""
Signing Error Hierarchy

Every failure inside the request-signing core raises one of these.
None of them is recoverable at this layer: the core never retries and never
returns a partial envelope. Callers (route handlers) decide how to surface them.
"""

from typing import Any, Dict, Optional


class SigningCoreError(Exception):
    """
    Base exception for all request-signing failures.

    Attributes:
        error_code: Stable machine-readable code (e.g. "signing:key_import")
        message: Human-readable message (never contains key material)
        details: Optional non-secret context
    """

    error_code = "signing:error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class CanonicalizationError(SigningCoreError):
    """
    Request body cannot be canonicalized.

    Examples:
    - Value of an unsupported type (set, bytes, arbitrary object)
    - Non-string object key
    - NaN or Infinity
    - Circular reference
    """

    error_code = "signing:canonicalization"


class KeyImportError(SigningCoreError):
    """
    Private key could not be imported.

    Examples:
    - Malformed PEM or invalid base64 body
    - DER that is not PKCS8
    - Key type other than RSA
    """

    error_code = "signing:key_import"


class SigningError(SigningCoreError):
    """Cryptographic primitive failed while producing a signature."""

    error_code = "signing:signature"


class ConfigurationError(SigningCoreError):
    """
    Signing inputs are misconfigured.

    Examples:
    - Missing key id or private key
    - Relative URL
    - URL path that does not start with the gateway prefix
    """

    error_code = "signing:configuration"
