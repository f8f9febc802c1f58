"""
FastAPI Dependencies

Routes receive settings and the identity-server client through Depends so
tests can swap them with app.dependency_overrides.
"""
from typing import Optional

from fastapi import Depends, Header

from sso_proxy.api.errors import manual_error
from sso_proxy.core.config import Settings, get_settings
from sso_proxy.core.sso_client import SSOClient


def get_sso_client(settings: Settings = Depends(get_settings)) -> SSOClient:
    """Identity-server client bound to current settings."""
    return SSOClient(settings)


def require_bearer(authorization: Optional[str] = Header(None)) -> str:
    """
    Require an "Authorization: Bearer ..." header.

    Raises:
        ProxyError: 401 invalid_token if missing or not a bearer token
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise manual_error(401, "invalid_token", "Missing or invalid authorization header")
    return authorization
