"""
Cinedex Backend: Rate Limiting Middleware
===========================================

What:  Rejects clients that exceed their token bucket with 429.
How:   Looks up the limiter on app.state (None when LIMITER_ENABLED=false,
       in which case the check is skipped entirely) and asks it about the
       client's IP. A denied request never reaches CORS, authentication or
       the route.

Client IP resolution:
    The socket peer address, unless LIMITER_TRUST_PROXY_HEADERS=true, in
    which case the first hit wins:
    1. First entry of X-Forwarded-For
    2. X-Real-IP
    3. The socket peer address
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cinedex.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    peer = request.client.host if request.client else "unknown"
    if not trust_proxy_headers:
        return peer
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return peer


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        limiter = request.app.state.rate_limiter
        if limiter is None:
            return await call_next(request)

        ip = client_ip(request, request.app.state.trust_proxy_headers)
        if not await limiter.allow(ip):
            logger.warning("Rate limit exceeded for IP %s", ip)
            return RateLimitExceededError().to_response()

        return await call_next(request)
