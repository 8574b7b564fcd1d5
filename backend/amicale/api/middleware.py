"""
Per-request log context and access logging.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from amicale.core.logging import get_logger

logger = get_logger(__name__)

# Health checks and metric scrapes are not logged
QUIET_PATHS = frozenset({"/health", "/metrics"})


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every log line emitted during a request with request_id, method and
    path. The caller's X-Request-ID is reused so a booking can be traced from
    the front end through background notifications.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise

        elapsed = _elapsed_ms(started)
        if request.url.path not in QUIET_PATHS:
            level = "warning" if response.status_code >= 500 else "info"
            getattr(logger, level)("request_completed", status_code=response.status_code, duration_ms=elapsed)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed}ms"
        return response
