"""
Request logging middleware: one log line per HTTP request with a trace id.

This is operator logging for every route. Gateway usage accounting (the
RequestLog table) is separate and happens in background tasks.
"""
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"

# Never written to logs
REDACTED_QUERY_PARAMS = {"token", "key", "api_key"}


def _loggable_target(request: Request) -> str:
    path = request.url.path
    if not request.query_params:
        return path
    parts = [
        f"{name}={'***' if name.lower() in REDACTED_QUERY_PARAMS else value}"
        for name, value in request.query_params.multi_items()
    ]
    return f"{path}?{'&'.join(parts)}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Stamp request.state.trace_id, log method/path/status/latency, echo the trace id header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Honour a trace id from an upstream proxy so log lines can be correlated
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        request.state.trace_id = trace_id
        target = _loggable_target(request)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            latency_ms = int((time.perf_counter() - started) * 1000)
            logger.error(
                f"[{trace_id}] {request.method} {target} -> EXCEPTION after {latency_ms}ms: {exc}",
                exc_info=True,
            )
            raise

        latency_ms = int((time.perf_counter() - started) * 1000)
        status_code = response.status_code
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, f"[{trace_id}] {request.method} {target} -> {status_code} ({latency_ms}ms)")

        response.headers[TRACE_HEADER] = trace_id
        return response
