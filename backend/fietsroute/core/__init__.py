"""Core API error handling."""

from fietsroute.core.exceptions import (
    APIException,
    ValidationException,
    ResourceNotFoundException,
    RoutingException,
    api_exception_from_route_error,
    register_exception_handlers,
    sanitize_error_message,
)

__all__ = [
    "APIException",
    "ValidationException",
    "ResourceNotFoundException",
    "RoutingException",
    "api_exception_from_route_error",
    "register_exception_handlers",
    "sanitize_error_message",
]
