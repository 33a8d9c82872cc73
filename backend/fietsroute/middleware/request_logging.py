"""Request logging middleware and logging setup."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fietsroute.config import settings


logger = logging.getLogger("api.requests")

REQUEST_ID_HEADER = "X-Request-ID"

# Client supplied ids are reused only when they look like an id
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{8,36}$")


def _request_id_for(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "")
    if _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return str(uuid.uuid4())[:8]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id and logs it with status and timing.

    The id is stored on ``request.state.request_id`` so error responses can
    quote it, and returned in the X-Request-ID header. Health checks are
    only logged at DEBUG unless they fail, and requests slower than
    ``settings.slow_request_ms`` are logged as warnings.
    """

    QUIET_PATHS = {"/health", "/api/v1/health", "/api/v1/health/db", "/api/v1/health/ready"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.log_requests:
            return await call_next(request)

        request_id = _request_id_for(request)
        request.state.request_id = request_id

        path = request.url.path
        target = f"{request.method} {path}"
        if request.url.query:
            target += f"?{request.url.query}"
        quiet = path in self.QUIET_PATHS

        if not quiet:
            logger.info(f"[{request_id}] --> {target} from {self._client_ip(request)}")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(f"[{request_id}] <-- 500 {target} ({elapsed_ms:.2f}ms) ERROR: {e}")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        self._log_response(request_id, target, response.status_code, elapsed_ms, quiet)
        return response

    def _log_response(
        self, request_id: str, target: str, status_code: int, elapsed_ms: float, quiet: bool
    ) -> None:
        message = f"[{request_id}] <-- {status_code} {target} ({elapsed_ms:.2f}ms)"

        if status_code >= 500:
            logger.error(message)
        elif status_code >= 400:
            logger.warning(message)
        elif elapsed_ms > settings.slow_request_ms:
            logger.warning(f"{message} slow")
        elif quiet:
            logger.debug(message)
        else:
            logger.info(message)

    @staticmethod
    def _client_ip(request: Request) -> str:
        """Client address, preferring the first X-Forwarded-For hop."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"


def setup_logging():
    """Configure logging for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logging.getLogger("api.requests").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Provider HTTP traffic and SQLite driver chatter
    for name in ("httpx", "httpcore", "aiosqlite"):
        logging.getLogger(name).setLevel(logging.WARNING)
