"""
API Error Responses

ProxyError carries a ready-made JSON body (the shapes the frontend expects:
{"error", "message"} for manual routes, {"error", "errorDescription"} for
OAuth routes). Signing failures and unexpected exceptions become a generic
500 with an error id; details are logged after redaction.
"""
import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sso_proxy.core.redaction import sanitize_message
from sso_proxy.core.signing.errors import SigningCoreError

error_logger = logging.getLogger("sso_proxy.api.errors")


class ProxyError(Exception):
    """An error response to return verbatim."""

    def __init__(self, status_code: int, content: Dict[str, Any]):
        super().__init__(content.get("error", "error"))
        self.status_code = status_code
        self.content = content


def manual_error(status_code: int, error: str, message: str) -> ProxyError:
    """Error body used by the manual-login routes."""
    return ProxyError(status_code, {"error": error, "message": message})


def oauth_error(status_code: int, error: str, description: str) -> ProxyError:
    """Error body used by the OAuth routes."""
    return ProxyError(status_code, {"error": error, "errorDescription": description})


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.content)


async def signing_error_handler(request: Request, exc: SigningCoreError) -> JSONResponse:
    """
    Request signing failed (bad key, misconfiguration, unserializable body).

    Nothing is retried; the client gets a generic 500 and an error id.
    """
    error_id = str(uuid.uuid4())
    error_logger.error(
        f"Error {error_id}: {type(exc).__name__} [{exc.error_code}] on "
        f"{request.method} {request.url.path}: {sanitize_message(exc.message)}"
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "server_error",
            "message": "Request signing failed",
            "error_id": error_id,
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Logs detailed errors internally but returns a safe generic message.

    Security: exception messages are sanitized before logging.
    """
    error_id = str(uuid.uuid4())
    error_logger.error(
        f"Error {error_id}: {type(exc).__name__}: {sanitize_message(str(exc))}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "server_error",
            "message": "An internal error occurred",
            "error_id": error_id,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the proxy's exception handlers to an app."""
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(SigningCoreError, signing_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
