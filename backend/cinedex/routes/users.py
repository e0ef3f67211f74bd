"""
Cinedex Backend: User Route Handlers
======================================

What:  Registration (POST /v1/users) and activation (PUT /v1/users/activated).

Registration Flow:
    ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌─────────────┐   ┌──────────────┐
    │  Decode  │──▶│  Hash    │──▶│ Validate │──▶│ Insert user │──▶│ Grant        │
    │  body    │   │ password │   │          │   │ (dup → 422) │   │ movies:read  │
    └──────────┘   └──────────┘   └──────────┘   └─────────────┘   └──────┬───────┘
                                                                          ▼
                        202 {"user": ...}  ◀── spawn welcome email ◀── activation token (3 days)

    The welcome email is sent from a background task after the unit of work
    commits; the response never waits on SMTP.
"""

import logging

from fastapi import APIRouter, Depends, Request

from cinedex.dependencies import get_background, get_mailer, get_store
from cinedex.exceptions import DuplicateEmailError, FailedValidationError, RecordNotFoundError
from cinedex.helpers import read_json
from cinedex.models import MOVIES_READ, User
from cinedex.repositories import Store
from cinedex.schemas.common import ErrorResponse
from cinedex.schemas.user import (
    ActivateUserRequest,
    RegisterUserRequest,
    UserEnvelope,
    UserResponse,
)
from cinedex.services.background import BackgroundTasks
from cinedex.services.mailer import Mailer
from cinedex.services.passwords import Password, validate_user
from cinedex.services.tokens import ACTIVATION_TTL, SCOPE_ACTIVATION, validate_token_plaintext
from cinedex.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["Users"])


@router.post(
    "",
    status_code=202,
    response_model=UserEnvelope,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Register a new user",
)
async def register_user(
    request: Request,
    store: Store = Depends(get_store),
    mailer: Mailer = Depends(get_mailer),
    background: BackgroundTasks = Depends(get_background),
) -> UserEnvelope:
    payload = await read_json(request, RegisterUserRequest)

    user = User(name=payload.name, email=payload.email, activated=False)
    password = Password()
    await password.set(payload.password)
    user.password_hash = password.hash

    v = Validator()
    validate_user(v, user, password)
    if not v.valid():
        raise FailedValidationError(v.errors)

    async with store.unit_of_work() as models:
        try:
            await models.users.insert(user)
        except DuplicateEmailError as exc:
            v.add_error("email", "a user with this email address already exists")
            raise FailedValidationError(v.errors) from exc

        await models.permissions.add_for_user(user.id, MOVIES_READ)
        token = await models.tokens.new(user.id, ACTIVATION_TTL, SCOPE_ACTIVATION)

    logger.info("Registered user %d", user.id)
    background.spawn(
        mailer.send,
        user.email,
        "user_welcome.j2",
        {"user_id": user.id, "name": user.name, "activation_token": token.plaintext},
        name="email:user_welcome",
    )
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.put(
    "/activated",
    response_model=UserEnvelope,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Activate an account with an activation token",
)
async def activate_user(request: Request, store: Store = Depends(get_store)) -> UserEnvelope:
    payload = await read_json(request, ActivateUserRequest)

    v = Validator()
    validate_token_plaintext(v, payload.token)
    if not v.valid():
        raise FailedValidationError(v.errors)

    async with store.unit_of_work() as models:
        try:
            user = await models.users.get_for_token(SCOPE_ACTIVATION, payload.token)
        except RecordNotFoundError as exc:
            v.add_error("token", "invalid or expired activation token")
            raise FailedValidationError(v.errors) from exc

        user.activated = True
        await models.users.update(user)
        await models.tokens.delete_all_for_user(SCOPE_ACTIVATION, user.id)

    logger.info("Activated user %d", user.id)
    return UserEnvelope(user=UserResponse.model_validate(user))
