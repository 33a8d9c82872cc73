"""Centralized exception handling with sanitized error responses."""

import logging
import traceback
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fietsroute.config import settings
from fietsroute.services.routing.errors import (
    AllProvidersFailed,
    InvalidCoordinates,
    NoRouteFound,
    RouteError,
)

logger = logging.getLogger("api.errors")


# =============================================================================
# Custom Exception Classes
# =============================================================================

class APIException(Exception):
    """Base exception for API errors with safe messages."""

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "An error occurred",
        error_code: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.detail = detail  # Safe message for client
        self.error_code = error_code or "INTERNAL_ERROR"
        self.internal_message = internal_message  # Full message for logs
        super().__init__(self.detail)


class ValidationException(APIException):
    """Validation error with safe field information."""

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="VALIDATION_ERROR",
        )
        self.field = field


class ResourceNotFoundException(APIException):
    """Resource not found."""

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        super().__init__(
            status_code=404,
            detail=f"{resource} not found",
            error_code="NOT_FOUND",
            internal_message=f"{resource} {resource_id} not found" if resource_id else None,
        )


class RoutingException(APIException):
    """A route could not be calculated."""

    def __init__(
        self,
        detail: str = "Unable to calculate route",
        internal_message: Optional[str] = None,
    ):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="ROUTING_ERROR",
            internal_message=internal_message,
        )


def api_exception_from_route_error(exc: RouteError) -> APIException:
    """Translate a routing failure into the API exception clients see."""
    if isinstance(exc, InvalidCoordinates):
        return ValidationException(detail=exc.message)
    if isinstance(exc, AllProvidersFailed):
        return RoutingException(
            detail="No routing provider could calculate a route",
            internal_message=exc.message,
        )
    if isinstance(exc, NoRouteFound):
        return RoutingException(detail="No route found between these points")
    return RoutingException(internal_message=exc.message)


# =============================================================================
# Error Response Formatting
# =============================================================================

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}

# Substrings that must never reach a client: paths, SQL, credentials and
# fragments of stored route blobs.
SENSITIVE_PATTERNS = (
    "/app/",
    "/usr/",
    "/home/",
    "traceback",
    "file \"",
    "select ",
    "insert ",
    "update ",
    "delete ",
    "sqlite",
    "sqlalchemy",
    "pickle",
    "api_key",
    "authorization",
)

GENERIC_MESSAGE = "An internal error occurred. Please try again later."


def create_error_response(
    error_code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create the ``{"error": {...}}`` body shared by every handler."""
    error: Dict[str, Any] = {"code": error_code, "message": message}
    if request_id:
        error["request_id"] = request_id
    if details and not settings.is_production():
        error["details"] = details
    return {"error": error}


def sanitize_error_message(message: str) -> str:
    """Replace messages that leak internals and cap the length."""
    lowered = message.lower()
    if any(pattern in lowered for pattern in SENSITIVE_PATTERNS):
        return GENERIC_MESSAGE
    if len(message) > 200:
        return message[:200] + "..."
    return message


def get_request_id(request: Request) -> str:
    """Get request ID from request state or generate new one."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid4())[:8]


def _error_json(
    request_id: str,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(error_code, message, request_id, details),
    )


# =============================================================================
# Exception Handlers
# =============================================================================

async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    request_id = get_request_id(request)

    log_message = f"[{request_id}] {exc.error_code}: {exc.detail}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"
    logger.log(logging.ERROR if exc.status_code >= 500 else logging.WARNING, log_message)

    return _error_json(request_id, exc.status_code, exc.error_code, exc.detail)


async def route_error_handler(request: Request, exc: RouteError) -> JSONResponse:
    """Handle routing errors that reach the API layer unconverted."""
    return await api_exception_handler(request, api_exception_from_route_error(exc))


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle standard HTTP exceptions with sanitization."""
    request_id = get_request_id(request)

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code >= 500:
        logger.error(f"[{request_id}] HTTP {exc.status_code}: {detail}")
        detail = sanitize_error_message(detail)
    else:
        logger.info(f"[{request_id}] HTTP {exc.status_code}: {detail}")

    return _error_json(
        request_id,
        exc.status_code,
        HTTP_ERROR_CODES.get(exc.status_code, "ERROR"),
        detail,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body validation errors with per-field messages."""
    request_id = get_request_id(request)

    field_errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        msg = error["msg"]
        if "value_error" in str(error.get("type", "")):
            msg = "Invalid value provided"
        field_errors.append({"field": field, "message": msg})

    logger.info(f"[{request_id}] Validation error: {len(field_errors)} field(s)")

    return _error_json(
        request_id,
        422,
        "VALIDATION_ERROR",
        "Invalid request data",
        details={"fields": field_errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with full sanitization."""
    request_id = get_request_id(request)

    logger.error(
        f"[{request_id}] Unhandled exception: {type(exc).__name__}: {str(exc)}"
    )
    if settings.debug:
        logger.error(traceback.format_exc())

    return _error_json(
        request_id,
        500,
        "INTERNAL_ERROR",
        "An unexpected error occurred. Please try again later.",
    )


# =============================================================================
# Register Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RouteError, route_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
