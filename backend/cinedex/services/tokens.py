"""
Opaque bearer tokens.

A token's plaintext is 16 random bytes, base-32 encoded without padding
(always 26 characters). Only its SHA-256 hash is stored; the plaintext is
handed to the client once, at creation time, and every later lookup goes
through the hash.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cinedex.validator import Validator

SCOPE_ACTIVATION = "activation"
SCOPE_AUTHENTICATION = "authentication"

ACTIVATION_TTL = timedelta(days=3)
AUTHENTICATION_TTL = timedelta(hours=24)

TOKEN_BYTES = 16
PLAINTEXT_LENGTH = 26


@dataclass
class IssuedToken:
    plaintext: str
    hash: bytes
    user_id: int
    expiry: datetime
    scope: str


def hash_plaintext(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def generate_token(user_id: int, ttl: timedelta, scope: str) -> IssuedToken:
    raw = secrets.token_bytes(TOKEN_BYTES)
    plaintext = base64.b32encode(raw).decode("ascii").rstrip("=")
    return IssuedToken(
        plaintext=plaintext,
        hash=hash_plaintext(plaintext),
        user_id=user_id,
        expiry=datetime.now(timezone.utc) + ttl,
        scope=scope,
    )


def validate_token_plaintext(v: Validator, plaintext: str) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(len(plaintext) == PLAINTEXT_LENGTH, "token", "must be 26 bytes long")
