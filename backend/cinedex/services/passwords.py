"""
Cinedex Backend: Password Hashing & User Validation
=====================================================

What:  The `Password` credential (transient plaintext + persisted bcrypt hash)
       and the validation rules for emails, passwords and user records.
How:   bcrypt runs in a worker thread via asyncio.to_thread so hashing at
       cost 12 (~250ms) never blocks the event loop.
Who:   Used by the users and tokens route handlers.

Credential rules:
    - The plaintext lives only on the in-memory Password object for the
      duration of the request. It is never persisted and never logged.
    - bcrypt only considers the first 72 bytes, so longer passwords are
      rejected at validation time instead of being silently truncated.
    - A mismatch is a normal `False`. A corrupt stored hash is an error.
"""

import asyncio
import logging
from typing import Optional

import bcrypt

from cinedex.config import settings
from cinedex.exceptions import InvariantViolationError, PasswordHashError
from cinedex.validator import EMAIL_RX, Validator, matches

logger = logging.getLogger(__name__)

MIN_PASSWORD_BYTES = 8
MAX_PASSWORD_BYTES = 72
MAX_NAME_BYTES = 500


class Password:
    """
    A user's credential.

    Attributes:
        plaintext: Set only by `set()`; None for credentials loaded from the store
        hash:      bcrypt hash bytes as stored in users.password_hash
    """

    def __init__(self, hash: Optional[bytes] = None):
        self.plaintext: Optional[str] = None
        self.hash: Optional[bytes] = hash

    def __repr__(self) -> str:
        return f"<Password(hash_set={self.hash is not None})>"

    async def set(self, plaintext: str) -> None:
        """Hash `plaintext` at the configured cost and keep both on this object."""
        self.hash = await asyncio.to_thread(_hash, plaintext, settings.bcrypt_cost)
        self.plaintext = plaintext

    async def matches(self, plaintext: str) -> bool:
        """
        Check a candidate plaintext against the stored hash.

        Returns:
            True on match, False on mismatch.

        Raises:
            PasswordHashError: the stored hash is missing or unreadable.
        """
        if self.hash is None:
            raise PasswordHashError(context={"reason": "no stored hash"})
        try:
            return await asyncio.to_thread(bcrypt.checkpw, _bcrypt_input(plaintext), self.hash)
        except ValueError as exc:
            # bcrypt raises ValueError("Invalid salt") for malformed hashes
            raise PasswordHashError(context={"reason": str(exc)}) from exc


def _bcrypt_input(plaintext: str) -> bytes:
    # bcrypt reads at most 72 bytes; longer inputs fail validation anyway
    return plaintext.encode("utf-8")[:MAX_PASSWORD_BYTES]


def _hash(plaintext: str, cost: int) -> bytes:
    return bcrypt.hashpw(_bcrypt_input(plaintext), bcrypt.gensalt(rounds=cost))


# ── Validation rules ─────────────────────────────────────────────────────


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(matches(email, EMAIL_RX), "email", "must be a valid email address")


def validate_password_plaintext(v: Validator, password: str) -> None:
    size = len(password.encode("utf-8"))
    v.check(password != "", "password", "must be provided")
    v.check(size >= MIN_PASSWORD_BYTES, "password", "must be at least 8 bytes long")
    v.check(size <= MAX_PASSWORD_BYTES, "password", "must not be more than 72 bytes long")


def validate_user(v: Validator, user, password: Password) -> None:
    """
    Validate a user about to be persisted.

    A missing hash is not something the client can fix: it means a handler
    forgot to call `Password.set()`, so it is raised as an invariant
    violation instead of being reported as a field error.
    """
    v.check(user.name != "", "name", "must be provided")
    v.check(len(user.name.encode("utf-8")) <= MAX_NAME_BYTES, "name", "must not be more than 500 bytes long")

    validate_email(v, user.email)

    if password.plaintext is not None:
        validate_password_plaintext(v, password.plaintext)

    if password.hash is None:
        logger.error("User %r reached validation without a password hash", user.email)
        raise InvariantViolationError(context={"reason": "missing password hash for user"})
