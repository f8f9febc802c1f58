"""
Replay-Resistance Primitives

Timestamps are second-precision ISO-8601 UTC strings ("2024-01-01T12:00:00.000Z").
Nonces are UUID v4 strings built from cryptographically secure random bytes.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from sso_proxy.core.signing.provider import CryptoProvider, resolve_provider


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"

NONCE_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")
TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.000Z$")


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """
    Current time as ISO-8601 UTC with the milliseconds forced to 000.

    Args:
        now: Override for the current time (naive values are taken as UTC)
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """
    Parse a timestamp produced by generate_timestamp.

    Raises:
        ValueError: If the format does not match
    """
    if not TIMESTAMP_PATTERN.match(value):
        raise ValueError(f"Invalid timestamp format: '{value}'")
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def generate_nonce(provider: Optional[CryptoProvider] = None) -> str:
    """
    Random UUID v4 string (xxxxxxxx-xxxx-4xxx-yxxx-xxxxxxxxxxxx, y in 8/9/a/b).
    """
    raw = resolve_provider(provider).random_bytes(16)
    return str(uuid.UUID(bytes=raw, version=4))


def is_valid_nonce(value: str) -> bool:
    """True if value has the UUID v4 layout produced by generate_nonce."""
    return bool(NONCE_PATTERN.match(value))
