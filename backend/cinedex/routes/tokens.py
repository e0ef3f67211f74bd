"""
Cinedex Backend: Token Route Handlers
=======================================

What:  Issue authentication tokens (login) and re-send activation tokens.

Account enumeration:
    POST /v1/tokens/activation answers 202 with the same message whether the
    address is unknown, already activated or waiting for activation. Only
    the last case actually issues a token and sends mail.
"""

import logging

from fastapi import APIRouter, Depends, Request

from cinedex.dependencies import get_background, get_mailer, get_store
from cinedex.exceptions import FailedValidationError, InvalidCredentialsError, RecordNotFoundError
from cinedex.helpers import read_json
from cinedex.repositories import Store
from cinedex.schemas.common import ErrorResponse, MessageResponse
from cinedex.schemas.user import (
    ActivationTokenRequest,
    AuthenticationTokenEnvelope,
    AuthenticationTokenRequest,
    TokenResponse,
)
from cinedex.services.background import BackgroundTasks
from cinedex.services.mailer import Mailer
from cinedex.services.passwords import Password, validate_email, validate_password_plaintext
from cinedex.services.tokens import (
    ACTIVATION_TTL,
    AUTHENTICATION_TTL,
    SCOPE_ACTIVATION,
    SCOPE_AUTHENTICATION,
)
from cinedex.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tokens", tags=["Tokens"])

ACTIVATION_RESEND_MESSAGE = (
    "if an unactivated account exists for this email address, "
    "an email will be sent to it containing the activation instructions"
)


@router.post(
    "/authentication",
    status_code=201,
    response_model=AuthenticationTokenEnvelope,
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Exchange email and password for a 24h bearer token",
)
async def create_authentication_token(
    request: Request, store: Store = Depends(get_store)
) -> AuthenticationTokenEnvelope:
    payload = await read_json(request, AuthenticationTokenRequest)

    v = Validator()
    validate_email(v, payload.email)
    validate_password_plaintext(v, payload.password)
    if not v.valid():
        raise FailedValidationError(v.errors)

    async with store.unit_of_work() as models:
        try:
            user = await models.users.get_by_email(payload.email)
        except RecordNotFoundError as exc:
            raise InvalidCredentialsError() from exc

        if not await Password(hash=user.password_hash).matches(payload.password):
            raise InvalidCredentialsError(context={"user_id": user.id})

        token = await models.tokens.new(user.id, AUTHENTICATION_TTL, SCOPE_AUTHENTICATION)

    return AuthenticationTokenEnvelope(
        authentication_token=TokenResponse(token=token.plaintext, expiry=token.expiry)
    )


@router.post(
    "/activation",
    status_code=202,
    response_model=MessageResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Send a fresh activation token",
)
async def create_activation_token(
    request: Request,
    store: Store = Depends(get_store),
    mailer: Mailer = Depends(get_mailer),
    background: BackgroundTasks = Depends(get_background),
) -> MessageResponse:
    payload = await read_json(request, ActivationTokenRequest)

    v = Validator()
    validate_email(v, payload.email)
    if not v.valid():
        raise FailedValidationError(v.errors)

    token = None
    async with store.unit_of_work() as models:
        try:
            user = await models.users.get_by_email(payload.email)
        except RecordNotFoundError:
            user = None

        if user is not None and not user.activated:
            token = await models.tokens.new(user.id, ACTIVATION_TTL, SCOPE_ACTIVATION)

    if token is not None:
        background.spawn(
            mailer.send,
            user.email,
            "token_activation.j2",
            {"activation_token": token.plaintext},
            name="email:token_activation",
        )

    return MessageResponse(message=ACTIVATION_RESEND_MESSAGE)
