import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("app.requests")


class LoggingMiddleware(BaseHTTPMiddleware):
    """One line per request; server errors and slow polls stand out."""

    slow_request_seconds = 5.0

    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start
        if response.status_code >= 500:
            level = logging.ERROR
        elif duration >= self.slow_request_seconds:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(
            level,
            "%s %s -> %s (%.2fs)",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )

        return response
