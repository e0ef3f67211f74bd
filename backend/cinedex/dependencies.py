"""
Cinedex Backend: Route Dependencies & Authorization Gates
===========================================================

What:  FastAPI dependencies that hand routes their collaborators (store,
       mailer, background tasks) and enforce per-route capability checks.
How:   Gates are chained dependencies, each building on the previous one:

           get_current_user
               └── require_authenticated_user   anonymous          → 401
                       └── require_activated_user   not activated  → 403
                               └── require_permission(code)  missing code → 403

       A gate raises a CinedexError; the global exception handler renders
       it, so the route body never runs for a rejected caller.
Who:   Declared in route signatures or `dependencies=[...]`.
"""

import logging
from typing import Callable

from fastapi import Depends, Request

from cinedex.exceptions import (
    AuthenticationRequiredError,
    InactiveAccountError,
    InvariantViolationError,
    NotPermittedError,
)
from cinedex.models import MOVIES_READ, User
from cinedex.repositories import Store
from cinedex.services.background import BackgroundTasks
from cinedex.services.mailer import Mailer

logger = logging.getLogger(__name__)


# ── Collaborators ────────────────────────────────────────────────────────


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_background(request: Request) -> BackgroundTasks:
    return request.app.state.background


# ── Identity & gates ─────────────────────────────────────────────────────


def get_current_user(request: Request) -> User:
    """
    The identity attached by AuthenticateMiddleware.

    Every request passes through that middleware, so a missing identity
    means the pipeline was assembled wrong; it is a 500, not a 401.
    """
    user = getattr(request.state, "user", None)
    if not isinstance(user, User):
        logger.error("No identity on request %s %s", request.method, request.url.path)
        raise InvariantViolationError(context={"reason": "missing user in request state"})
    return user


def require_authenticated_user(user: User = Depends(get_current_user)) -> User:
    if user.is_anonymous:
        raise AuthenticationRequiredError()
    return user


def require_activated_user(user: User = Depends(require_authenticated_user)) -> User:
    if not user.activated:
        raise InactiveAccountError()
    return user


def require_permission(code: str) -> Callable[..., User]:
    """
    Gate factory.

    Usage:
        @router.post("/v1/movies", dependencies=[Depends(require_permission("movies:write"))])
    """

    async def check_permission(
        user: User = Depends(require_activated_user),
        store: Store = Depends(get_store),
    ) -> User:
        async with store.unit_of_work() as models:
            permissions = await models.permissions.get_all_for_user(user.id)
        if not permissions.includes(code):
            raise NotPermittedError(context={"user_id": user.id, "required": code})
        return user

    check_permission.__name__ = f"require_permission_{code.replace(':', '_')}"
    return check_permission


_require_movies_read = require_permission(MOVIES_READ)


async def require_read_access(request: Request, user: User = Depends(get_current_user)) -> User:
    """
    Read gate for the movie GET routes: open to everyone while
    MOVIES_PUBLIC_READ is true, otherwise `movies:read` is required.
    """
    if request.app.state.movies_public_read:
        return user
    user = require_activated_user(require_authenticated_user(user))
    return await _require_movies_read(user=user, store=get_store(request))
