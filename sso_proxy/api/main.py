"""
FastAPI App for the SSO Demo Proxy

Manual login (signed requests) and OAuth2 Authorization Code + PKCE, proxied
to the external identity server.
"""
import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from sso_proxy import __version__
from sso_proxy.api.errors import register_exception_handlers
from sso_proxy.api.routes import manual_auth, oauth
from sso_proxy.core.config import Settings, get_settings
from sso_proxy.core.logging_setup import configure_logging
from sso_proxy.core.signing.envelope import (
    HEADER_API_KEY,
    HEADER_APP_IDENTIFIER,
    HEADER_KEY_ID,
    HEADER_NONCE,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
)
from sso_proxy.core.sso_client import (
    HEADER_PASS_SOURCE,
    HEADER_RESET_PROVIDER,
    HEADER_USERNAME_SOURCE,
)

logger = logging.getLogger(__name__)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the proxy application.

    Args:
        settings: Settings to use (defaults to get_settings()). When given,
            every route and /health resolves this instance instead of the
            environment.
    """
    explicit = settings is not None
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="SSO Demo Proxy",
        description="Manual login and OAuth2/PKCE proxy for the SSO identity server",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    if explicit:
        app.dependency_overrides[get_settings] = lambda: settings

    register_exception_handlers(app)

    # Security headers middleware (add first - outermost)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            HEADER_USERNAME_SOURCE,
            HEADER_PASS_SOURCE,
            HEADER_RESET_PROVIDER,
            # Signed request headers
            HEADER_TIMESTAMP,
            HEADER_SIGNATURE,
            HEADER_KEY_ID,
            HEADER_NONCE,
            HEADER_APP_IDENTIFIER,
            HEADER_API_KEY,
        ],
        max_age=3600,
    )

    app.include_router(manual_auth.router)
    app.include_router(oauth.router)

    @app.get("/health")
    async def health_check(current: Settings = Depends(get_settings)):
        """Health check endpoint (no auth required)"""
        return {
            "status": "healthy",
            "version": __version__,
            "manual_login_configured": current.manual_login_configured,
            "oauth_configured": bool(current.client_id),
        }

    if not settings.manual_login_configured:
        logger.warning("Manual login not configured (KEY_ID / PRIVATE_KEY_PEM missing)")
    if not settings.client_id:
        logger.warning("OAuth not configured (CLIENT_ID missing)")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", get_settings().api_port))
    uvicorn.run(app, host="0.0.0.0", port=port)
