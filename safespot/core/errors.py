"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes for the hazard pipeline
    • Consistent JSON error response format for the local API
    • Automatic logging of unhandled errors

Propagation policy:
    NetworkError              → surfaces to AlertsStore as offline/error state
    ParseError                → absorbed at the SnapshotStore boundary
    ModelNotInitializedError  → severity requested before the model is trained
    None of these is fatal to the process.

Usage:
    from safespot.core.errors import NetworkError, register_error_handlers

    raise NetworkError("seismic", cause=exc)
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from safespot.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SafeSpotError(Exception):
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


class NetworkError(SafeSpotError):
    """A feed fetch exhausted its attempts (timeout, transport error, non-2xx)."""

    def __init__(self, source: str, cause: Optional[BaseException] = None):
        reason = f"{type(cause).__name__}: {cause}" if cause else "unknown cause"
        super().__init__(
            message=f"Failed to fetch {source} feed ({reason})",
            status_code=503,
            error_code="NETWORK_ERROR",
            details={"source": source},
        )
        self.source = source
        self.cause = cause


class ParseError(SafeSpotError):
    """Persisted snapshot blob could not be decoded."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PARSE_ERROR",
            details=details,
        )


class ModelNotInitializedError(SafeSpotError):
    """Severity prediction requested before the model finished training."""

    def __init__(self, model: str = "severity"):
        super().__init__(
            message=f"Model '{model}' is not initialized",
            status_code=500,
            error_code="MODEL_NOT_INITIALIZED",
            details={"model": model},
        )


class NotFoundError(SafeSpotError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class InvalidStateTransitionError(SafeSpotError):
    """The refresh state machine was asked for a transition it does not allow."""

    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot move from '{current}' to '{target}'",
            status_code=409,
            error_code="INVALID_STATE_TRANSITION",
            details={"current": current, "target": target},
        )


class RefreshInProgressError(SafeSpotError):
    """A refresh is already in flight (409)."""

    def __init__(self) -> None:
        super().__init__(
            message="A refresh is already in progress",
            status_code=409,
            error_code="REFRESH_IN_PROGRESS",
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

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(SafeSpotError)
    async def handle_safespot_error(request: Request, exc: SafeSpotError):
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
        return _build_error_response(500, "INTERNAL_ERROR", message, request=request)
