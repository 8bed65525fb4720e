"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Les erreurs du domaine (`backend.domain.errors`) sont traduites en `APIError` avec un code stable;
toutes les réponses d'erreur partagent l'enveloppe `{code, message, trace_id, details}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from backend.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_UNPROCESSABLE_ENTITY,
    HTTP_UNAUTHORIZED,
)
from backend.domain.errors import (
    ConfigurationError,
    DeploymentError,
    DeploymentInProgressError,
    NotFoundError,
    ValidationError,
)

log = structlog.get_logger(__name__)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class APIError(HTTPException):
    """Custom API error with standard envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        trace_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.trace_id = trace_id
        self.details = details


class ErrorCodes:
    """Standard error codes for the API."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Business logic errors
    PROVIDER_NOT_CONFIGURED = "PROVIDER_NOT_CONFIGURED"
    SUBDOMAIN_TAKEN = "SUBDOMAIN_TAKEN"


_STATUS_CODES = {
    HTTP_BAD_REQUEST: ErrorCodes.BAD_REQUEST,
    HTTP_UNAUTHORIZED: ErrorCodes.UNAUTHORIZED,
    HTTP_FORBIDDEN: ErrorCodes.FORBIDDEN,
    HTTP_NOT_FOUND: ErrorCodes.NOT_FOUND,
    HTTP_CONFLICT: ErrorCodes.CONFLICT,
    HTTP_UNPROCESSABLE_ENTITY: ErrorCodes.VALIDATION_ERROR,
    HTTP_INTERNAL_SERVER_ERROR: ErrorCodes.INTERNAL_ERROR,
    HTTP_SERVICE_UNAVAILABLE: ErrorCodes.SERVICE_UNAVAILABLE,
}


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Trace id: en-tête X-Trace-ID, sinon id posé par le middleware de requête."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def from_domain_error(exc: DeploymentError) -> APIError:
    """Traduit une erreur du domaine en `APIError`."""
    if isinstance(exc, DeploymentInProgressError):
        return conflict(str(exc))
    if isinstance(exc, ValidationError):
        return APIError(HTTP_BAD_REQUEST, ErrorCodes.VALIDATION_ERROR, str(exc))
    if isinstance(exc, NotFoundError):
        return not_found(str(exc))
    if isinstance(exc, ConfigurationError):
        return APIError(
            HTTP_SERVICE_UNAVAILABLE, ErrorCodes.PROVIDER_NOT_CONFIGURED, str(exc)
        )
    return internal_error(str(exc))


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with standard envelope."""
    trace_id = extract_trace_id(request) or exc.trace_id
    log.warning(
        "api_error",
        code=exc.code,
        error_message=exc.message,
        status_code=exc.status_code,
        trace_id=trace_id,
    )
    return create_error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        trace_id=trace_id,
        details=exc.details,
    )


def handle_domain_error(request: Request, exc: DeploymentError) -> JSONResponse:
    """Handle domain errors raised synchronously by services."""
    return handle_api_error(request, from_domain_error(exc))


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standard envelope."""
    trace_id = extract_trace_id(request)
    code = _STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    log.warning(
        "http_exception",
        code=code,
        error_message=str(exc.detail),
        status_code=exc.status_code,
        trace_id=trace_id,
    )
    return create_error_response(
        status_code=exc.status_code,
        code=code,
        message=str(exc.detail),
        trace_id=trace_id,
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    trace_id = extract_trace_id(request)
    log.error(
        "unexpected_error",
        trace_id=trace_id,
        exception_type=type(exc).__name__,
        exc_info=exc,
    )
    return create_error_response(
        status_code=HTTP_INTERNAL_SERVER_ERROR,
        code=ErrorCodes.INTERNAL_ERROR,
        message="An unexpected error occurred",
        trace_id=trace_id,
    )


def install_error_handlers(app: FastAPI) -> None:
    """Enregistre les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(DeploymentError, handle_domain_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_generic_exception)


def unauthorized(message: str, trace_id: str | None = None) -> APIError:
    """Create a 401 Unauthorized error."""
    return APIError(HTTP_UNAUTHORIZED, ErrorCodes.UNAUTHORIZED, message, trace_id)


def forbidden(message: str, trace_id: str | None = None) -> APIError:
    """Create a 403 Forbidden error."""
    return APIError(HTTP_FORBIDDEN, ErrorCodes.FORBIDDEN, message, trace_id)


def not_found(message: str, trace_id: str | None = None) -> APIError:
    """Create a 404 Not Found error."""
    return APIError(HTTP_NOT_FOUND, ErrorCodes.NOT_FOUND, message, trace_id)


def conflict(
    message: str, trace_id: str | None = None, details: dict[str, Any] | None = None
) -> APIError:
    """Create a 409 Conflict error."""
    return APIError(HTTP_CONFLICT, ErrorCodes.CONFLICT, message, trace_id, details)


def internal_error(message: str, trace_id: str | None = None) -> APIError:
    """Create a 500 Internal Server Error."""
    return APIError(HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.INTERNAL_ERROR, message, trace_id)
