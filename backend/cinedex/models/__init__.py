"""ORM models. Importing this package registers every table on Base.metadata."""

from cinedex.models.movie import Movie
from cinedex.models.permission import (
    MOVIES_READ,
    MOVIES_WRITE,
    Permission,
    Permissions,
    users_permissions,
)
from cinedex.models.token import Token
from cinedex.models.user import ANONYMOUS_USER, User

__all__ = [
    "ANONYMOUS_USER",
    "MOVIES_READ",
    "MOVIES_WRITE",
    "Movie",
    "Permission",
    "Permissions",
    "Token",
    "User",
    "users_permissions",
]
