from __future__ import annotations

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from .logging_utils import PERF_LEVEL_NUM, PERF_LOGGER_NAME
from .trace import RequestTrace, reset_current_trace, set_current_trace

perf_logger = logging.getLogger(PERF_LOGGER_NAME)


class TelemetryMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace = RequestTrace(path=request.url.path, method=request.method)
        request.state.request_id = str(trace.request_id)
        token = set_current_trace(trace)

        response: Response | None = None
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            trace.finalize()
            if response is not None and request.url.path.startswith("/api/"):
                # Streaming bodies are still pending here; timings cover setup only.
                response.headers["X-Query-Performance"] = trace.to_header_value()
                response.headers["X-Request-Id"] = str(trace.request_id)

            self._log_trace(trace, status_code)
            reset_current_trace(token)

    def _log_trace(self, trace: RequestTrace, status_code: int) -> None:
        if not trace.path.startswith("/api/"):
            return

        perf_logger.log(
            PERF_LEVEL_NUM,
            "request_trace request_id=%s method=%s path=%s status=%s db_ms=%s db_round_trips=%s total_ms=%s results=%s",
            trace.request_id,
            trace.method,
            trace.path,
            status_code,
            round(trace.db_time_ms, 3),
            trace.db_round_trips,
            round(trace.total_time_ms or 0.0, 3),
            trace.result_count,
        )
