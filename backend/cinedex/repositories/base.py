"""
Cinedex Backend: Repository Interfaces
========================================

What:  Abstract contracts for every store the API touches, plus the
       `Models` bundle and the `Store` that hands one out per unit of work.
How:   Two implementations satisfy these contracts: `cinedex.repositories.sql`
       (PostgreSQL via SQLAlchemy) and `cinedex.repositories.memory` (tests).
       The application receives a `Store` through `create_app(store=...)`;
       nothing reaches for a module-level session.
Who:   Route handlers, the authentication middleware and permission gates.

Contract shared by both implementations:
    - get/delete with id < 1 raise RecordNotFoundError without touching the store
    - insert fills id, created_at and version (= 1) on the passed entity
    - update bumps version by exactly 1, or raises EditConflictError when the
      held version no longer matches
    - a duplicate users.email raises DuplicateEmailError
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Sequence, Tuple

from cinedex.models import Movie, Permissions, User
from cinedex.services.filters import Filters, Metadata
from cinedex.services.tokens import IssuedToken, generate_token


class MovieRepository(ABC):
    @abstractmethod
    async def insert(self, movie: Movie) -> Movie:
        ...

    @abstractmethod
    async def get(self, movie_id: int) -> Movie:
        ...

    @abstractmethod
    async def update(self, movie: Movie) -> Movie:
        ...

    @abstractmethod
    async def delete(self, movie_id: int) -> None:
        ...

    @abstractmethod
    async def get_all(
        self, title: str, genres: Sequence[str], filters: Filters
    ) -> Tuple[List[Movie], Metadata]:
        """
        One page of movies matching `title` (full-text, case-insensitive) and
        containing every genre in `genres`. Empty title/genres match all.
        Ordered by the filter's sort column, ties broken by ascending id.
        """


class UserRepository(ABC):
    @abstractmethod
    async def insert(self, user: User) -> User:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> User:
        ...

    @abstractmethod
    async def update(self, user: User) -> User:
        ...

    @abstractmethod
    async def get_for_token(self, scope: str, plaintext: str) -> User:
        """
        Resolve a token plaintext to its owner. Unknown, expired and
        wrong-scope tokens all raise RecordNotFoundError.
        """


class TokenRepository(ABC):
    async def new(self, user_id: int, ttl: timedelta, scope: str) -> IssuedToken:
        token = generate_token(user_id, ttl, scope)
        await self.insert(token)
        return token

    @abstractmethod
    async def insert(self, token: IssuedToken) -> None:
        ...

    @abstractmethod
    async def delete_all_for_user(self, scope: str, user_id: int) -> None:
        ...


class PermissionRepository(ABC):
    @abstractmethod
    async def get_all_for_user(self, user_id: int) -> Permissions:
        ...

    @abstractmethod
    async def add_for_user(self, user_id: int, *codes: str) -> None:
        """Grant catalog permissions by code. Unknown codes are ignored."""


@dataclass
class Models:
    movies: MovieRepository
    users: UserRepository
    tokens: TokenRepository
    permissions: PermissionRepository


class Store(ABC):
    """Source of `Models` bundles, one per unit of work."""

    @abstractmethod
    def unit_of_work(self) -> AbstractAsyncContextManager[Models]:
        """
        Usage:
            async with store.unit_of_work() as models:
                movie = await models.movies.get(movie_id)

        Changes are committed when the block exits cleanly and discarded
        when it raises.
        """

    async def close(self) -> None:
        """Release pooled resources. Called once, on shutdown."""

    def status(self) -> Dict[str, Any]:
        return {}
