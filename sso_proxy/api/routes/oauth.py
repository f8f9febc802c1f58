"""
OAuth2 / OIDC Routes

Authorization Code + PKCE support. The browser starts the flow with the URL
from /api/oauth/authorize; token, revoke and userinfo calls are proxied so the
client secret never leaves the server.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header
from pydantic import BaseModel, Field

from sso_proxy.api.dependencies import get_sso_client
from sso_proxy.api.errors import oauth_error
from sso_proxy.core.config import Settings, get_settings
from sso_proxy.core.pkce import (
    build_authorization_url,
    generate_code_verifier_and_challenge,
    generate_random_string,
    generate_state,
)
from sso_proxy.core.sso_client import IdentityServerError, SSOClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/oauth", tags=["oauth"])

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"


class AuthorizeResponse(BaseModel):
    """Everything the browser needs to start and later complete the flow."""
    authorizationUrl: str = Field(..., description="Redirect target on the identity server")
    state: str = Field(..., description="CSRF state; compare on callback")
    nonce: str = Field(..., description="OIDC nonce")
    codeVerifier: str = Field(..., description="PKCE verifier; send to /api/oauth/token")
    codeChallenge: str = Field(..., description="S256 challenge included in the URL")


def _require_client_id(settings: Settings) -> None:
    if not settings.client_id:
        logger.error("CLIENT_ID not configured")
        raise oauth_error(400, "invalid_client", "CLIENT_ID not configured")


def build_token_params(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a token request body and build upstream grant parameters.

    grantType defaults to refresh_token when a refreshToken is present,
    otherwise authorization_code.

    Raises:
        ProxyError: 400 invalid_request when required parameters are missing
    """
    refresh_token = body.get("refreshToken")
    grant_type = body.get("grantType") or (GRANT_REFRESH_TOKEN if refresh_token else GRANT_AUTHORIZATION_CODE)
    params: Dict[str, Any] = {"grantType": grant_type}

    if grant_type == GRANT_AUTHORIZATION_CODE:
        code = body.get("code")
        redirect_uri = body.get("redirectUri")
        code_verifier = body.get("codeVerifier")
        if not code or not redirect_uri or not code_verifier:
            raise oauth_error(400, "invalid_request", "Missing required params")
        params.update(code=code, redirectUri=redirect_uri, codeVerifier=code_verifier)
    elif grant_type == GRANT_REFRESH_TOKEN:
        if not refresh_token:
            raise oauth_error(400, "invalid_request", "Missing refresh_token")
        params["refreshToken"] = refresh_token
        if body.get("scope"):
            params["scope"] = body["scope"]

    return params


@router.get("/authorize", response_model=AuthorizeResponse)
async def authorize(settings: Settings = Depends(get_settings)):
    """Create PKCE material and the authorization URL."""
    _require_client_id(settings)

    pkce = generate_code_verifier_and_challenge()
    state = generate_state()
    nonce = generate_random_string(32)
    url = build_authorization_url(
        sso_base_url=settings.sso_base_url,
        client_id=settings.client_id,
        redirect_uri=settings.oauth_redirect_uri,
        code_challenge=pkce.code_challenge,
        state=state,
        scopes=settings.oauth_scopes,
        nonce=nonce,
    )
    return AuthorizeResponse(
        authorizationUrl=url,
        state=state,
        nonce=nonce,
        codeVerifier=pkce.code_verifier,
        codeChallenge=pkce.code_challenge,
    )


@router.post("/token")
async def token(
    body: Dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
    client: SSOClient = Depends(get_sso_client),
):
    """Exchange an authorization code (or refresh token) for tokens."""
    _require_client_id(settings)
    params = build_token_params(body)
    try:
        return await client.request_token(params)
    except IdentityServerError as e:
        logger.warning(f"Token endpoint error: status={e.status_code}")
        raise oauth_error(e.status_code, "token_error", e.details)


@router.post("/revoke")
async def revoke(
    body: Dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
    client: SSOClient = Depends(get_sso_client),
):
    """Revoke a token. Body: {"token": "...", "tokenTypeHint": "refresh_token"}"""
    token_value = body.get("token")
    if not token_value:
        raise oauth_error(400, "invalid_request", "Missing token parameter")
    _require_client_id(settings)

    try:
        await client.revoke_token(token_value, token_type_hint=body.get("tokenTypeHint"))
    except IdentityServerError as e:
        logger.warning(f"Revoke endpoint error: status={e.status_code}")
        raise oauth_error(e.status_code, "revoke_error", e.details)

    return {"status": True, "message": "Token revoked successfully"}


@router.get("/userinfo")
async def userinfo(
    authorization: Optional[str] = Header(None),
    client: SSOClient = Depends(get_sso_client),
):
    """OIDC userinfo for the caller's bearer token."""
    if not authorization or not authorization.startswith("Bearer "):
        raise oauth_error(401, "invalid_token", "Missing or invalid authorization header")
    try:
        return await client.userinfo(authorization)
    except IdentityServerError as e:
        logger.warning(f"Userinfo endpoint error: status={e.status_code}")
        raise oauth_error(e.status_code, "userinfo_error", e.details)
