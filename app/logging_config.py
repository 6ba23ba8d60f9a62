"""Logging setup and per-request logging middleware.

Every log line carries the id of the request being served. The id comes
from the ``X-Request-Id`` header when the client sends one, otherwise a
fresh UUID is generated, and it is echoed back in the response.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

logger = logging.getLogger("vacation_rentals.requests")


def get_request_id() -> Optional[str]:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Adds ``request_id`` to every record passing through the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if getattr(handler, "_vacation_rentals", False):
            root.setLevel(level.upper())
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    handler._vacation_rentals = True
    root.addHandler(handler)
    root.setLevel(level.upper())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        token = _request_id.set(request_id)
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            try:
                response: Response = await call_next(request)
            except Exception:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.exception(
                    "%s %s -> 500 (%.2f ms)", request.method, request.url.path, duration_ms
                )
                raise

            duration_ms = (time.perf_counter() - start) * 1000
            response.headers["X-Request-Id"] = request_id
            logger.info(
                "%s %s -> %s (%.2f ms) user=%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                getattr(request.state, "user_id", None),
            )
            return response
        finally:
            _request_id.reset(token)
