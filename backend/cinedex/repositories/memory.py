"""
In-memory repositories.

Used by the test suite (and handy for local demos) in place of PostgreSQL.
The behaviour mirrors the SQL store closely enough for the API tests:
entities are copied in and out so handlers never hold a live reference,
updates are version-checked, `users.email` is unique and title search
matches whole words case-insensitively.

Writes are applied immediately; a unit of work that raises is not rolled
back.
"""

import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from cinedex.exceptions import DuplicateEmailError, EditConflictError, RecordNotFoundError
from cinedex.models import MOVIES_READ, MOVIES_WRITE, Movie, Permissions, User
from cinedex.repositories.base import (
    Models,
    MovieRepository,
    PermissionRepository,
    Store,
    TokenRepository,
    UserRepository,
)
from cinedex.services.filters import Filters, Metadata, calculate_metadata
from cinedex.services.tokens import IssuedToken, hash_plaintext

_WORD_RX = re.compile(r"\w+")


def _words(text: str) -> Set[str]:
    return set(_WORD_RX.findall(text.lower()))


def _copy_movie(m: Movie) -> Movie:
    return Movie(
        id=m.id,
        created_at=m.created_at,
        title=m.title,
        year=m.year,
        runtime=m.runtime,
        genres=list(m.genres),
        version=m.version,
    )


def _copy_user(u: User) -> User:
    return User(
        id=u.id,
        created_at=u.created_at,
        name=u.name,
        email=u.email,
        password_hash=u.password_hash,
        activated=u.activated,
        version=u.version,
    )


class MemoryMovieRepository(MovieRepository):
    def __init__(self) -> None:
        self.rows: Dict[int, Movie] = {}
        self._next_id = 1

    async def insert(self, movie: Movie) -> Movie:
        movie.id = self._next_id
        self._next_id += 1
        movie.created_at = datetime.now(timezone.utc)
        movie.version = 1
        self.rows[movie.id] = _copy_movie(movie)
        return movie

    async def get(self, movie_id: int) -> Movie:
        if movie_id < 1 or movie_id not in self.rows:
            raise RecordNotFoundError()
        return _copy_movie(self.rows[movie_id])

    async def update(self, movie: Movie) -> Movie:
        stored = self.rows.get(movie.id)
        if stored is None or stored.version != movie.version:
            raise EditConflictError()
        movie.version += 1
        self.rows[movie.id] = _copy_movie(movie)
        return movie

    async def delete(self, movie_id: int) -> None:
        if movie_id < 1 or self.rows.pop(movie_id, None) is None:
            raise RecordNotFoundError()

    async def get_all(
        self, title: str, genres: Sequence[str], filters: Filters
    ) -> Tuple[List[Movie], Metadata]:
        wanted = _words(title)
        matched = [
            m
            for m in self.rows.values()
            if wanted <= _words(m.title) and set(genres) <= set(m.genres)
        ]

        column = filters.sort_column()

        def sort_key(m: Movie) -> Any:
            value = getattr(m, column)
            return value.lower() if isinstance(value, str) else value

        # Stable sorts: id ascending first, then the requested column
        matched.sort(key=lambda m: m.id)
        matched.sort(key=sort_key, reverse=filters.descending)

        page = matched[filters.offset: filters.offset + filters.limit]
        total = len(matched) if page else 0
        return [_copy_movie(m) for m in page], calculate_metadata(total, filters.page, filters.page_size)


class MemoryUserRepository(UserRepository):
    def __init__(self, tokens: "MemoryTokenRepository") -> None:
        self.rows: Dict[int, User] = {}
        self.tokens = tokens
        self._next_id = 1

    def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        return any(u.email == email and u.id != exclude_id for u in self.rows.values())

    async def insert(self, user: User) -> User:
        if self._email_taken(user.email):
            raise DuplicateEmailError()
        user.id = self._next_id
        self._next_id += 1
        user.created_at = datetime.now(timezone.utc)
        user.version = 1
        self.rows[user.id] = _copy_user(user)
        return user

    async def get_by_email(self, email: str) -> User:
        for u in self.rows.values():
            if u.email == email:
                return _copy_user(u)
        raise RecordNotFoundError()

    async def update(self, user: User) -> User:
        stored = self.rows.get(user.id)
        if stored is None or stored.version != user.version:
            raise EditConflictError()
        if self._email_taken(user.email, exclude_id=user.id):
            raise DuplicateEmailError()
        user.version += 1
        self.rows[user.id] = _copy_user(user)
        return user

    async def get_for_token(self, scope: str, plaintext: str) -> User:
        row = self.tokens.rows.get(hash_plaintext(plaintext))
        if row is None or row.scope != scope or row.expiry <= datetime.now(timezone.utc):
            raise RecordNotFoundError()
        if row.user_id not in self.rows:
            raise RecordNotFoundError()
        return _copy_user(self.rows[row.user_id])


class MemoryTokenRepository(TokenRepository):
    def __init__(self) -> None:
        self.rows: Dict[bytes, IssuedToken] = {}

    async def insert(self, token: IssuedToken) -> None:
        self.rows[token.hash] = token

    async def delete_all_for_user(self, scope: str, user_id: int) -> None:
        doomed = [h for h, t in self.rows.items() if t.scope == scope and t.user_id == user_id]
        for h in doomed:
            del self.rows[h]


class MemoryPermissionRepository(PermissionRepository):
    def __init__(self, catalog: Iterable[str] = (MOVIES_READ, MOVIES_WRITE)) -> None:
        self.catalog = set(catalog)
        self.grants: Dict[int, Set[str]] = {}

    async def get_all_for_user(self, user_id: int) -> Permissions:
        return Permissions(self.grants.get(user_id, ()))

    async def add_for_user(self, user_id: int, *codes: str) -> None:
        self.grants.setdefault(user_id, set()).update(c for c in codes if c in self.catalog)


class MemoryStore(Store):
    """Every unit of work shares the same four repositories."""

    def __init__(self) -> None:
        self.tokens = MemoryTokenRepository()
        self.models = Models(
            movies=MemoryMovieRepository(),
            users=MemoryUserRepository(self.tokens),
            tokens=self.tokens,
            permissions=MemoryPermissionRepository(),
        )

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[Models]:
        yield self.models

    def status(self) -> Dict[str, Any]:
        return {"backend": "memory"}
