"""
Request/response counters.

Counts every request that reaches this layer, and every response leaving
it together with its status and processing time. An exception escaping
the inner chain is counted as a 500 before it propagates to recovery.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        metrics = request.app.state.metrics
        start = time.perf_counter()
        metrics.request_received()
        try:
            response = await call_next(request)
        except Exception:
            metrics.response_sent(500, _elapsed_us(start))
            raise
        metrics.response_sent(response.status_code, _elapsed_us(start))
        return response


def _elapsed_us(start: float) -> int:
    return int((time.perf_counter() - start) * 1_000_000)
