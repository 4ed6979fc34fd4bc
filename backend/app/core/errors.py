"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • Consistent JSON error response format
    • Automatic logging of unhandled errors

Trigger handlers never let these escape (see notifications.handlers);
they reach the HTTP layer only for problems with the trigger request
itself (unknown kind, bad secret).

Usage:
    from backend.app.core.errors import MissingDataError

    raise MissingDataError("chat_message.created", missing=["userId"])
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class NotificationError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(NotificationError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        details = {"resource": resource, **identifiers}
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class UnknownEventError(NotFoundError):
    """No handler is bound to the requested event kind."""

    def __init__(self, kind: str):
        super().__init__("Event handler", kind=kind)
        self.error_code = "UNKNOWN_EVENT"


class MissingDataError(NotificationError):
    """Event document lacks the fields a handler needs (422)."""

    def __init__(self, event_kind: str, *, missing: Optional[List[str]] = None):
        missing = missing or []
        super().__init__(
            message=(
                f"Event '{event_kind}' is missing required data"
                + (f": {', '.join(missing)}" if missing else "")
            ),
            status_code=422,
            error_code="MISSING_DATA",
            details={"event_kind": event_kind, "missing": missing},
        )
        self.missing = missing


class PushGatewayError(NotificationError):
    """Push gateway call failed (502).

    ``code`` carries the gateway's error code (``messaging/...``) when the
    gateway reported one.
    """

    def __init__(self, message: str = "", *, code: Optional[str] = None):
        super().__init__(
            message=f"Push gateway failed: {message}",
            status_code=502,
            error_code="PUSH_GATEWAY_ERROR",
            details={"gateway_code": code},
        )
        self.code = code


class PersistenceError(NotificationError):
    """Write to the document store failed."""

    def __init__(self, operation: str, message: str = ""):
        super().__init__(
            message=f"Persistence '{operation}' failed: {message}",
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            details={"operation": operation},
        )


class AuthenticationError(NotificationError):
    """Trigger request did not carry the shared secret (401)."""

    def __init__(self, message: str = "Invalid trigger secret"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="UNAUTHENTICATED",
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(NotificationError)
    async def handle_notification_error(request: Request, exc: NotificationError):
        logger.error(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(
            500, "INTERNAL_ERROR", message, request=request,
        )
