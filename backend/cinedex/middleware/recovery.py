"""
Cinedex Backend: Recovery Middleware
======================================

What:  Last line of defence for exceptions nothing else handled.
How:   Wraps the whole inner chain. Any exception that escapes it is logged
       with the request method and URL, and the client gets the generic
       500 envelope with `Connection: close` so the server drops a
       connection that may be in an inconsistent state.
When:  Outermost application middleware.

Recognised application errors (CinedexError) are rendered by the FastAPI
exception handlers before they get here; this layer only sees the
unexpected ones.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cinedex.exceptions import CinedexError

logger = logging.getLogger(__name__)


class RecoveryMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled error on %s %s: %s",
                request.method,
                request.url,
                exc,
                exc_info=True,
            )
            response = CinedexError(context={"error_type": type(exc).__name__}).to_response()
            response.headers["Connection"] = "close"
            return response
