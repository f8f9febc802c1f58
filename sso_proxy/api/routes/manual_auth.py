"""
Manual Login Routes

Proxies username/password login and account calls to the identity server.
Every upstream request is signed (see sso_proxy.core.signing).

Endpoints:
- POST /api/auth/login
- GET  /api/auth/me
- PUT  /api/auth/update-profile
- POST /api/auth/refresh
- POST /api/auth/logout
- POST /api/auth/pre-token/claims
- POST /api/auth/reset-password/reset
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header

from sso_proxy.api.dependencies import get_sso_client, require_bearer
from sso_proxy.api.errors import manual_error
from sso_proxy.core.sso_client import IdentityServerError, SSOClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["manual-auth"])


def _upstream_failure(error: str, exc: IdentityServerError):
    logger.warning(f"Upstream call failed ({error}): status={exc.status_code}")
    return manual_error(exc.status_code, error, exc.details)


@router.post("/login")
async def login(
    body: Dict[str, Any] = Body(...),
    x_username_source: Optional[str] = Header(None),
    x_pass_source: Optional[str] = Header(None),
    client: SSOClient = Depends(get_sso_client),
):
    """
    Username/password login.

    Body: {"identifier": "...", "password": "..."}
    Optional headers x-username-source / x-pass-source are forwarded.
    """
    try:
        return await client.login(body, username_source=x_username_source, pass_source=x_pass_source)
    except IdentityServerError as e:
        raise _upstream_failure("login_failed", e)


@router.get("/me")
async def get_me(
    authorization: str = Depends(require_bearer),
    client: SSOClient = Depends(get_sso_client),
):
    """Current user's details."""
    try:
        return await client.get_user_details(authorization)
    except IdentityServerError as e:
        raise _upstream_failure("fetch_failed", e)


@router.put("/update-profile")
async def update_profile(
    body: Dict[str, Any] = Body(...),
    authorization: str = Depends(require_bearer),
    client: SSOClient = Depends(get_sso_client),
):
    """Update the current user's profile."""
    try:
        return await client.update_profile(authorization, body)
    except IdentityServerError as e:
        raise _upstream_failure("update_failed", e)


@router.post("/refresh")
async def refresh(
    body: Dict[str, Any] = Body(...),
    client: SSOClient = Depends(get_sso_client),
):
    """Refresh tokens. Body: {"refreshToken": "..."}"""
    try:
        return await client.refresh_token(body)
    except IdentityServerError as e:
        raise _upstream_failure("refresh_failed", e)


@router.post("/logout")
async def logout(
    authorization: str = Depends(require_bearer),
    client: SSOClient = Depends(get_sso_client),
):
    """End the current session."""
    try:
        return await client.logout(authorization)
    except IdentityServerError as e:
        raise _upstream_failure("logout_failed", e)


@router.post("/pre-token/claims")
async def pre_token_claims(
    body: Dict[str, Any] = Body(...),
    client: SSOClient = Depends(get_sso_client),
):
    try:
        return await client.pre_token_claims(body)
    except IdentityServerError as e:
        raise _upstream_failure("pre_token_failed", e)


@router.post("/reset-password/reset")
async def reset_password(
    body: Dict[str, Any] = Body(...),
    x_reset_provider: Optional[str] = Header(None),
    client: SSOClient = Depends(get_sso_client),
):
    """Complete a password reset; x-reset-provider (email/sms) is forwarded."""
    try:
        return await client.reset_password(body, reset_provider=x_reset_provider)
    except IdentityServerError as e:
        raise _upstream_failure("password_reset_failed", e)
