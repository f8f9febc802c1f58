"""
Identity Server Client

Async HTTP client for the external SSO identity server.

Two kinds of calls:
1. Manual login / account calls: signed per request (X-Timestamp, X-Nonce,
   X-Key-Id, X-Signature) plus APIKey and X-App-Identifier.
2. OAuth calls (token, revoke, userinfo): unsigned; the confidential client
   credentials held by this proxy are injected.

The identity server's API is fixed and external; paths below are relative to
SSO_BACKEND_BASE_URL, which must end in the gateway prefix (e.g. ".../api").
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx
from starlette.concurrency import run_in_threadpool

from sso_proxy.core.config import Settings
from sso_proxy.core.redaction import redact_headers
from sso_proxy.core.signing.envelope import (
    HEADER_API_KEY,
    HEADER_APP_IDENTIFIER,
    sign_manual_request,
)
from sso_proxy.core.signing.provider import CryptoProvider

logger = logging.getLogger(__name__)


# Upstream paths (relative to SSO_BACKEND_BASE_URL)
LOGIN_PATH = "/public/login"
LOGOUT_PATH = "/public/logout"
ME_PATH = "/public/me"
REFRESH_TOKEN_PATH = "/public/me/refresh-token"
PRE_TOKEN_CLAIMS_PATH = "/public/pre-token/claims"
RESET_PASSWORD_PATH = "/public/reset-password/reset"
OAUTH_TOKEN_PATH = "/public/oauth/token"
OAUTH_REVOKE_PATH = "/public/oauth/revoke"
OAUTH_USERINFO_PATH = "/public/oauth/userinfo"

HEADER_USERNAME_SOURCE = "x-username-source"
HEADER_PASS_SOURCE = "x-pass-source"
HEADER_RESET_PROVIDER = "x-reset-provider"
HEADER_TENANT = "Tenant"


class IdentityServerError(Exception):
    """
    Raised when the identity server rejects a request or cannot be reached.

    Attributes:
        status_code: Upstream HTTP status (502 for transport failures)
        details: Upstream response text, relayed to the caller
    """

    def __init__(self, message: str, status_code: int = 502, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details if details is not None else message


class SSOClient:
    """
    HTTP client for the SSO identity server.

    A new httpx.AsyncClient is opened per call; signing runs in the
    threadpool so RSA work does not block the event loop.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        provider: Optional[CryptoProvider] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings (URLs, credentials, timeout)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            provider: Optional crypto provider for signing
        """
        self.settings = settings
        self.base_url = settings.backend_url
        self.timeout = settings.sso_http_timeout
        self._transport = transport
        self._provider = provider

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        body: Optional[Any] = None,
    ) -> Any:
        """Send a request and return the decoded JSON response."""
        url = f"{self.base_url}{path}"
        content = None
        if body is not None:
            content = json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

        logger.debug(f"Identity server request: {method} {path} headers={redact_headers(headers)}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, content=content)
        except httpx.RequestError as e:
            logger.error(f"Identity server unreachable: {method} {path}: {type(e).__name__}")
            raise IdentityServerError(f"Failed to connect to identity server: {e}", status_code=502)

        logger.info(f"Identity server {method} {path} -> {response.status_code}")

        if not response.is_success:
            raise IdentityServerError(
                f"Identity server returned {response.status_code}",
                status_code=response.status_code,
                details=response.text,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise IdentityServerError(
                "Identity server returned invalid JSON",
                status_code=502,
                details="Invalid JSON in identity server response",
            )

    async def _signed_request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Sign and send a manual-login request."""
        credentials = self.settings.signing_credentials()
        url = f"{self.base_url}{path}"

        envelope = await run_in_threadpool(
            sign_manual_request,
            method,
            url,
            body,
            credentials,
            provider=self._provider,
            path_prefix=self.settings.sso_gateway_path_prefix,
        )

        headers = {
            "Content-Type": "application/json",
            HEADER_APP_IDENTIFIER: self.settings.app_identifier,
            HEADER_API_KEY: self.settings.api_key.get_secret_value(),
        }
        headers.update(envelope.to_headers(credentials.key_id))
        if extra_headers:
            headers.update(extra_headers)

        return await self._send(method, path, headers, body)

    # ------------------------------------------------------------------
    # Manual login (signed)
    # ------------------------------------------------------------------

    async def login(
        self,
        body: Dict[str, Any],
        username_source: Optional[str] = None,
        pass_source: Optional[str] = None,
    ) -> Any:
        """
        Username/password login.

        Args:
            body: {"identifier": ..., "password": ...}
            username_source: x-username-source header (defaults to settings)
            pass_source: x-pass-source header, sent only if set
        """
        extra = {HEADER_USERNAME_SOURCE: username_source or self.settings.default_username_source}
        if pass_source:
            extra[HEADER_PASS_SOURCE] = pass_source
        return await self._signed_request("POST", LOGIN_PATH, body, extra)

    async def get_user_details(self, authorization: str) -> Any:
        """Fetch the current user's profile."""
        return await self._signed_request("GET", ME_PATH, None, {"Authorization": authorization})

    async def update_profile(self, authorization: str, body: Dict[str, Any]) -> Any:
        """Update the current user's profile."""
        return await self._signed_request("PUT", ME_PATH, body, {"Authorization": authorization})

    async def refresh_token(self, body: Dict[str, Any]) -> Any:
        """Exchange a refresh token ({"refreshToken": ...}) for new tokens."""
        return await self._signed_request("POST", REFRESH_TOKEN_PATH, body)

    async def logout(self, authorization: str) -> Any:
        """End the current session."""
        return await self._signed_request("POST", LOGOUT_PATH, {}, {"Authorization": authorization})

    async def pre_token_claims(self, body: Dict[str, Any]) -> Any:
        """Request pre-token claims."""
        return await self._signed_request("POST", PRE_TOKEN_CLAIMS_PATH, body)

    async def reset_password(self, body: Dict[str, Any], reset_provider: Optional[str] = None) -> Any:
        """Complete a password reset (email or SMS provider)."""
        extra = {HEADER_RESET_PROVIDER: reset_provider} if reset_provider else None
        return await self._signed_request("POST", RESET_PASSWORD_PATH, body, extra)

    # ------------------------------------------------------------------
    # OAuth (unsigned)
    # ------------------------------------------------------------------

    def _with_client_credentials(self, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(params)
        payload["clientId"] = self.settings.client_id
        client_secret = self.settings.client_secret.get_secret_value()
        if client_secret:
            payload["clientSecret"] = client_secret
        return payload

    async def request_token(self, params: Dict[str, Any]) -> Any:
        """
        Call the token endpoint.

        Args:
            params: Grant parameters (grantType, code, redirectUri, codeVerifier,
                refreshToken, scope); clientId/clientSecret are added here
        """
        return await self._send(
            "POST",
            OAUTH_TOKEN_PATH,
            {"Content-Type": "application/json"},
            self._with_client_credentials(params),
        )

    async def revoke_token(self, token: str, token_type_hint: Optional[str] = None) -> Any:
        """Revoke an access or refresh token."""
        params: Dict[str, Any] = {"token": token}
        if token_type_hint:
            params["tokenTypeHint"] = token_type_hint
        return await self._send(
            "POST",
            OAUTH_REVOKE_PATH,
            {"Content-Type": "application/json"},
            self._with_client_credentials(params),
        )

    async def userinfo(self, authorization: str) -> Any:
        """Fetch OIDC userinfo for a bearer token."""
        headers = {
            "Authorization": authorization,
            HEADER_TENANT: self.settings.app_identifier,
        }
        return await self._send("POST", OAUTH_USERINFO_PATH, headers)
