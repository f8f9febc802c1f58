"""
PKCE Utilities

Proof Key for Code Exchange (RFC 7636) helpers for the OAuth2 Authorization
Code flow against the SSO identity server.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

AUTHORIZE_PATH = "/oauth/authorize"


@dataclass(frozen=True)
class PKCEPair:
    """Code verifier and its S256 challenge."""
    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"


def base64url_encode(data: bytes) -> str:
    """Base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_random_string(length: int = 32) -> str:
    """Base64url string over `length` random bytes."""
    return base64url_encode(secrets.token_bytes(length))


def code_challenge_for(code_verifier: str) -> str:
    """S256 challenge: base64url(SHA-256(verifier))."""
    return base64url_encode(hashlib.sha256(code_verifier.encode("ascii")).digest())


def generate_code_verifier_and_challenge() -> PKCEPair:
    """
    Generate a PKCE verifier/challenge pair.

    The verifier is 86 characters (64 random bytes), within RFC 7636's 43-128 range.
    """
    code_verifier = generate_random_string(64)
    return PKCEPair(code_verifier=code_verifier, code_challenge=code_challenge_for(code_verifier))


def generate_state() -> str:
    """Generate a secure state parameter for CSRF protection."""
    return generate_random_string(32)


def build_authorization_url(
    sso_base_url: str,
    client_id: str,
    redirect_uri: str,
    code_challenge: str,
    state: str,
    scopes: str = "openid profile email offline_access",
    nonce: Optional[str] = None,
) -> str:
    """
    Build the identity server's authorization URL.

    The identity server expects PascalCase query parameters (ClientId,
    ResponseType, CodeChallenge, ...).

    Args:
        sso_base_url: Public SSO base URL
        client_id: OAuth client id
        redirect_uri: Registered redirect URI
        code_challenge: S256 PKCE challenge
        state: CSRF state
        scopes: Space-separated scopes
        nonce: Optional OIDC nonce

    Returns:
        Full authorization URL for redirect
    """
    params = {
        "ClientId": client_id,
        "ResponseType": "code",
        "RedirectUri": redirect_uri,
        "Scope": scopes,
        "State": state,
        "CodeChallenge": code_challenge,
        "CodeChallengeMethod": "S256",
    }
    if nonce:
        params["Nonce"] = nonce
    return f"{sso_base_url.rstrip('/')}{AUTHORIZE_PATH}?{urlencode(params)}"
