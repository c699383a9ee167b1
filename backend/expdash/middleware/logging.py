"""Structured logging with per-request trace IDs."""
import structlog
import uuid
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from expdash.config import get_settings


def configure_logging(debug: bool = False) -> None:
    """JSON logs in production, readable console logs when debugging."""
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False
    )


configure_logging(get_settings().debug)

logger = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Bind a trace_id to every request and log its outcome.

    The trace_id is also returned to the caller in the X-Trace-ID header so
    dashboard errors can be matched with server logs.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(trace_id=trace_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None
        )

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_time) * 1000)
            )
            raise

        logger.info(
            "request_completed",
            status_code=response.status_code,
            latency_ms=int((time.time() - start_time) * 1000)
        )
        response.headers["X-Trace-ID"] = trace_id
        return response


def get_logger():
    """Get configured structured logger."""
    return logger
