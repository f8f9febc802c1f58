"""
Body Hash and Canonical String

Canonical String Format (7 fields joined by "\n"):
    {timestamp}
    {METHOD}
    {scheme}://{hostname}
    {path without gateway prefix}{?query}
    {key_id}
    {body_hash}
    {nonce}

Where:
    - timestamp: ISO-8601 UTC with ".000Z" (see nonce.generate_timestamp)
    - METHOD: HTTP method, uppercased
    - hostname: lowercase host without port
    - path: URL path with the configured gateway prefix (default "/api") removed
    - body_hash: base64 SHA-256 of the canonical JSON body ("{}" when absent)

Field order and separator are a wire contract with the verifying server.
"""

import base64
from typing import Any, Optional
from urllib.parse import urlsplit

from sso_proxy.core.signing.canonical import canonical_bytes
from sso_proxy.core.signing.errors import ConfigurationError
from sso_proxy.core.signing.provider import CryptoProvider, resolve_provider


# Path prefix the identity server's API gateway strips before verifying
DEFAULT_PATH_PREFIX = "/api"

CANONICAL_FIELD_COUNT = 7


def compute_body_hash(body: Optional[Any], provider: Optional[CryptoProvider] = None) -> str:
    """
    Compute the body hash for a request.

    Args:
        body: JSON-like request body, or None
        provider: Crypto provider (default provider if None)

    Returns:
        Standard base64 of the SHA-256 digest of the canonical body

    Example:
        >>> compute_body_hash(None)
        'RBNvo1WzZ4oRRq0W9+hknpT7T8If536DEMBg9hyq/4o='
    """
    digest = resolve_provider(provider).sha256(canonical_bytes(body))
    return base64.b64encode(digest).decode("ascii")


def split_signed_path(path: str, path_prefix: str = DEFAULT_PATH_PREFIX) -> str:
    """
    Remove the gateway prefix from a URL path.

    Raises:
        ConfigurationError: If the path is shorter than or does not start with the prefix
    """
    if len(path) < len(path_prefix):
        raise ConfigurationError(
            f"URL path '{path}' is shorter than gateway prefix '{path_prefix}'",
            details={"path": path, "path_prefix": path_prefix},
        )
    if not path.startswith(path_prefix):
        raise ConfigurationError(
            f"URL path '{path}' does not start with gateway prefix '{path_prefix}'",
            details={"path": path, "path_prefix": path_prefix},
        )
    return path[len(path_prefix):]


def build_canonical_string(
    timestamp: str,
    method: str,
    url: str,
    body_hash: str,
    key_id: str,
    nonce: str,
    path_prefix: str = DEFAULT_PATH_PREFIX,
) -> str:
    """
    Build the canonical string that gets signed.

    Args:
        timestamp: Request timestamp
        method: HTTP method (any case)
        url: Absolute request URL as sent to the identity server
        body_hash: Output of compute_body_hash
        key_id: Key identifier registered with the identity server
        nonce: Request nonce
        path_prefix: Gateway prefix stripped from the URL path

    Returns:
        Canonical string

    Raises:
        ConfigurationError: On relative URLs, prefix mismatch, empty method or
            key id, or any field containing a newline

    Example:
        >>> build_canonical_string("2024-01-01T00:00:00.000Z", "post",
        ...     "https://sso.example.com/api/public/login", "HASH", "kid", "NONCE")
        '2024-01-01T00:00:00.000Z\\nPOST\\nhttps://sso.example.com\\n/public/login\\nkid\\nHASH\\nNONCE'
    """
    if not method:
        raise ConfigurationError("HTTP method is required for signing")
    if not key_id:
        raise ConfigurationError("Key id is required for signing")

    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ConfigurationError(
            f"Signing requires an absolute URL, got '{url}'",
            details={"url": url},
        )

    authority = f"{parts.scheme.lower()}://{parts.hostname}"
    path = split_signed_path(parts.path or "/", path_prefix)
    path_and_query = f"{path}?{parts.query}" if parts.query else path

    fields = [
        timestamp,
        method.upper(),
        authority,
        path_and_query,
        key_id,
        body_hash,
        nonce,
    ]
    for field in fields:
        if "\n" in field or "\r" in field:
            raise ConfigurationError("Canonical string fields must not contain line breaks")

    return "\n".join(fields)
