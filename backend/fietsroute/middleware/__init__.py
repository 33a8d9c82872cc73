"""Middleware modules for request processing."""

from fietsroute.middleware.request_logging import RequestLoggingMiddleware, setup_logging

__all__ = [
    "RequestLoggingMiddleware",
    "setup_logging",
]
