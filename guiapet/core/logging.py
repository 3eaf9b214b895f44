import logging
import time
import uuid
from typing import Awaitable, Callable, cast

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

_warned: set[str] = set()


def setup_logging(log_level: str = "info") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level)
    # httpx has its own stdlib logger that duplicates our structured logs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return cast(structlog.BoundLogger, structlog.get_logger(name))


def warn_once(key: str, event: str, **kw: object) -> bool:
    """Log a warning the first time *key* is seen in this process.

    Returns True when the warning was emitted.
    """
    if key in _warned:
        return False
    _warned.add(key)
    get_logger("guiapet").warning(event, **kw)
    return True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = str(uuid.uuid4())
        start = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        log = get_logger("http")
        log.info(
            "request",
            endpoint=str(request.url.path),
            method=request.method,
            status=response.status_code,
            latency_ms=latency_ms,
            user_id=getattr(request.state, "user_id", None),
        )

        response.headers["X-Request-ID"] = request_id
        return response
