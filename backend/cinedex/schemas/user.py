"""
User and token request/response schemas.

The user response carries no password hash and no version.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from cinedex.schemas.common import StrictInput


class RegisterUserRequest(StrictInput):
    name: str = ""
    email: str = ""
    password: str = ""


class ActivateUserRequest(StrictInput):
    token: str = ""


class AuthenticationTokenRequest(StrictInput):
    email: str = ""
    password: str = ""


class ActivationTokenRequest(StrictInput):
    email: str = ""


class UserResponse(BaseModel):
    id: int
    created_at: datetime
    name: str
    email: str
    activated: bool

    model_config = ConfigDict(from_attributes=True)


class UserEnvelope(BaseModel):
    user: UserResponse


class TokenResponse(BaseModel):
    token: str
    expiry: datetime


class AuthenticationTokenEnvelope(BaseModel):
    authentication_token: TokenResponse
