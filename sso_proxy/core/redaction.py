"""
Redaction of Secret Material

Never log keys, signatures, tokens, passwords or raw request bodies.
Used by route handlers before logging upstream exchanges and by the logging
filter as a last line for free-text messages.
"""

import re
from typing import Any, FrozenSet, Mapping, Optional, Set

REDACTED = "[REDACTED]"

# Compared after lowercasing and removing "-", "_" and spaces
REDACT_KEYS: FrozenSet[str] = frozenset(
    {
        "apikey",
        "xapikey",
        "authorization",
        "proxyauthorization",
        "cookie",
        "setcookie",
        "password",
        "newpassword",
        "oldpassword",
        "confirmpassword",
        "secret",
        "clientsecret",
        "token",
        "accesstoken",
        "refreshtoken",
        "idtoken",
        "code",
        "codeverifier",
        "privatekey",
        "privatekeypem",
        "xsignature",
        "signature",
    }
)

_PEM_BLOCK = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?(-----END [A-Z ]*PRIVATE KEY-----|$)",
    re.DOTALL,
)
_BEARER = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)
_JWT = re.compile(r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
_KEY_VALUE = re.compile(
    r"""(?P<key>["']?(?:password|passwd|secret|client_?secret|api_?key|apikey|"""
    r"""x-signature|signature|refresh_?token|access_?token|code_?verifier|private_?key(?:_pem)?)["']?)"""
    r"""(?P<sep>\s*[=:]\s*)["']?[^"'\s,;}]+["']?""",
    re.IGNORECASE,
)


def _normalize(key: str) -> str:
    return re.sub(r"[-_\s]", "", key.lower())


def _normalized_key_set(keys: FrozenSet[str]) -> Set[str]:
    return {_normalize(k) for k in keys}


def redact_mapping(data: Mapping[str, Any], keys: Optional[FrozenSet[str]] = None) -> dict:
    """
    Copy a mapping with sensitive keys replaced by [REDACTED].

    Matching is case-insensitive and ignores dashes/underscores, so
    "X-Signature", "x_signature" and "XSignature" all match. Nested mappings
    and lists of mappings are redacted recursively.
    """
    norm_set = _normalized_key_set(keys or REDACT_KEYS)
    return _redact_impl(data, norm_set)


def _redact_impl(data: Mapping[str, Any], norm_set: Set[str]) -> dict:
    out = {}
    for k, v in data.items():
        if _normalize(str(k)) in norm_set:
            out[k] = REDACTED
        elif isinstance(v, Mapping):
            out[k] = _redact_impl(v, norm_set)
        elif isinstance(v, list):
            out[k] = [_redact_impl(x, norm_set) if isinstance(x, Mapping) else x for x in v]
        else:
            out[k] = v
    return out


def redact_headers(headers: Mapping[str, str]) -> dict:
    """Redact an HTTP header mapping (APIKey, X-Signature, Authorization, ...)."""
    return redact_mapping(dict(headers.items()))


def sanitize_message(message: str) -> str:
    """
    Scrub secrets from free text (exception messages, log lines).

    Removes:
    - PEM private key blocks
    - Bearer tokens and JWTs
    - key=value / "key": "value" pairs for sensitive keys
    """
    sanitized = _PEM_BLOCK.sub("[REDACTED_PRIVATE_KEY]", message)
    sanitized = _BEARER.sub(r"\1[REDACTED]", sanitized)
    sanitized = _JWT.sub("[REDACTED_JWT]", sanitized)
    sanitized = _KEY_VALUE.sub(lambda m: f"{m.group('key')}{m.group('sep')}{REDACTED}", sanitized)
    return sanitized
