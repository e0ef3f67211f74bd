"""
Cinedex Backend: Authentication Middleware
============================================

What:  Resolves the caller's identity from `Authorization: Bearer <token>`.
How:
    no header                      → ANONYMOUS_USER, continue
    not "Bearer <x>" / bad token   → 401 invalid or missing authentication token
    token unknown or expired       → same 401
    store failure                  → 500
    resolved                       → request.state.user = User, continue

Every response from here on carries `Vary: Authorization`, since the same
URL yields different results for different callers.

This layer only establishes identity. Whether the identity is allowed to
do something is decided per route by the gates in `cinedex.dependencies`.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cinedex.exceptions import CinedexError, InvalidAuthenticationTokenError, RecordNotFoundError
from cinedex.models import ANONYMOUS_USER
from cinedex.services.tokens import SCOPE_AUTHENTICATION, validate_token_plaintext
from cinedex.validator import Validator

logger = logging.getLogger(__name__)


class AuthenticateMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await self._authenticate(request, call_next)
        response.headers.add_vary_header("Authorization")
        return response

    async def _authenticate(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        header = request.headers.get("Authorization")
        if not header:
            request.state.user = ANONYMOUS_USER
            return await call_next(request)

        parts = header.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            return InvalidAuthenticationTokenError(context={"reason": "malformed header"}).to_response()

        plaintext = parts[1]
        v = Validator()
        validate_token_plaintext(v, plaintext)
        if not v.valid():
            return InvalidAuthenticationTokenError(context={"reason": "malformed token"}).to_response()

        try:
            async with request.app.state.store.unit_of_work() as models:
                user = await models.users.get_for_token(SCOPE_AUTHENTICATION, plaintext)
        except RecordNotFoundError:
            return InvalidAuthenticationTokenError(context={"reason": "unknown or expired"}).to_response()
        except CinedexError as exc:
            logger.error("Token lookup failed: %s | Context: %s", exc, exc.context)
            return exc.to_response()

        request.state.user = user
        return await call_next(request)
