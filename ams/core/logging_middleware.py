import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request, tagged with the caller's X-User-Id."""

    async def dispatch(self, request: Request, call_next):
        started = time.monotonic()
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - started) * 1000

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s [user %s] -> %s (%.1f ms)",
            request.method,
            request.url.path,
            request.headers.get("X-User-Id", "-"),
            response.status_code,
            elapsed_ms,
        )
        return response
