"""
Cinedex Backend: PostgreSQL Repositories
==========================================

What:  SQLAlchemy implementations of the repository interfaces and the
       `SqlStore` that owns the engine.
How:   One AsyncSession per unit of work: committed when the `async with`
       block exits cleanly, rolled back when it raises. Every repository
       method runs under `bounded` (per-operation deadline); store errors
       are translated here, once, into the application taxonomy:

           StaleDataError (version_id_col mismatch)   → EditConflictError
           IntegrityError on users_email_key          → DuplicateEmailError
           no row                                      → RecordNotFoundError
           anything else                               → DatabaseError

Who:   Constructed by `python -m cinedex` and handed to `create_app()`.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import BigInteger, delete, func, insert, literal, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from cinedex.database import bounded, create_engine, create_session_factory
from cinedex.exceptions import (
    DatabaseError,
    DuplicateEmailError,
    EditConflictError,
    RecordNotFoundError,
)
from cinedex.models import Movie, Permission, Permissions, Token, User, users_permissions
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

logger = logging.getLogger(__name__)

UNIQUE_EMAIL_CONSTRAINT = "users_email_key"


async def _flush_update(session: AsyncSession) -> None:
    try:
        await session.flush()
    except StaleDataError as exc:
        raise EditConflictError() from exc
    except IntegrityError as exc:
        if UNIQUE_EMAIL_CONSTRAINT in str(exc):
            raise DuplicateEmailError() from exc
        raise


class SqlMovieRepository(MovieRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @bounded
    async def insert(self, movie: Movie) -> Movie:
        self.session.add(movie)
        await self.session.flush()
        return movie

    @bounded
    async def get(self, movie_id: int) -> Movie:
        if movie_id < 1:
            raise RecordNotFoundError()
        movie = await self.session.get(Movie, movie_id)
        if movie is None:
            raise RecordNotFoundError()
        return movie

    @bounded
    async def update(self, movie: Movie) -> Movie:
        # `movie` must have been loaded in this unit of work; the version it
        # was loaded with is the one the UPDATE is conditioned on.
        await _flush_update(self.session)
        return movie

    @bounded
    async def delete(self, movie_id: int) -> None:
        if movie_id < 1:
            raise RecordNotFoundError()
        result = await self.session.execute(delete(Movie).where(Movie.id == movie_id))
        if result.rowcount == 0:
            raise RecordNotFoundError()

    @bounded
    async def get_all(
        self, title: str, genres: Sequence[str], filters: Filters
    ) -> Tuple[List[Movie], Metadata]:
        total = func.count().over().label("total_records")
        stmt = select(Movie, total)

        if title:
            stmt = stmt.where(
                func.to_tsvector("simple", Movie.title).op("@@")(
                    func.plainto_tsquery("simple", title)
                )
            )
        if genres:
            stmt = stmt.where(Movie.genres.contains(list(genres)))

        column = getattr(Movie, filters.sort_column())
        stmt = (
            stmt.order_by(column.desc() if filters.descending else column.asc(), Movie.id.asc())
            .limit(filters.limit)
            .offset(filters.offset)
        )

        rows = (await self.session.execute(stmt)).all()
        total_records = rows[0][1] if rows else 0
        movies = [row[0] for row in rows]
        return movies, calculate_metadata(total_records, filters.page, filters.page_size)


class SqlUserRepository(UserRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @bounded
    async def insert(self, user: User) -> User:
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if UNIQUE_EMAIL_CONSTRAINT in str(exc):
                raise DuplicateEmailError() from exc
            raise
        return user

    @bounded
    async def get_by_email(self, email: str) -> User:
        result = await self.session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            raise RecordNotFoundError()
        return user

    @bounded
    async def update(self, user: User) -> User:
        await _flush_update(self.session)
        return user

    @bounded
    async def get_for_token(self, scope: str, plaintext: str) -> User:
        stmt = (
            select(User)
            .join(Token, Token.user_id == User.id)
            .where(
                Token.hash == hash_plaintext(plaintext),
                Token.scope == scope,
                Token.expiry > datetime.now(timezone.utc),
            )
        )
        user = (await self.session.execute(stmt)).scalar_one_or_none()
        if user is None:
            raise RecordNotFoundError()
        return user


class SqlTokenRepository(TokenRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @bounded
    async def insert(self, token: IssuedToken) -> None:
        self.session.add(
            Token(hash=token.hash, user_id=token.user_id, expiry=token.expiry, scope=token.scope)
        )
        await self.session.flush()

    @bounded
    async def delete_all_for_user(self, scope: str, user_id: int) -> None:
        await self.session.execute(
            delete(Token).where(Token.scope == scope, Token.user_id == user_id)
        )


class SqlPermissionRepository(PermissionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @bounded
    async def get_all_for_user(self, user_id: int) -> Permissions:
        stmt = (
            select(Permission.code)
            .join(users_permissions, users_permissions.c.permission_id == Permission.id)
            .where(users_permissions.c.user_id == user_id)
        )
        codes = (await self.session.execute(stmt)).scalars().all()
        return Permissions(codes)

    @bounded
    async def add_for_user(self, user_id: int, *codes: str) -> None:
        if not codes:
            return
        # INSERT INTO users_permissions SELECT :user_id, id FROM permissions WHERE code IN (...)
        stmt = insert(users_permissions).from_select(
            ["user_id", "permission_id"],
            select(literal(user_id, BigInteger), Permission.id).where(Permission.code.in_(codes)),
        )
        await self.session.execute(stmt)


class SqlStore(Store):
    """
    Owns the pooled engine. Each `unit_of_work()` opens one session and
    binds the four repositories to it.
    """

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self.engine = engine or create_engine()
        self.session_factory = create_session_factory(self.engine)

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[Models]:
        async with self.session_factory() as session:
            try:
                yield Models(
                    movies=SqlMovieRepository(session),
                    users=SqlUserRepository(session),
                    tokens=SqlTokenRepository(session),
                    permissions=SqlPermissionRepository(session),
                )
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise DatabaseError(context={"operation": "commit"}) from exc
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")

    def status(self) -> Dict[str, Any]:
        return {"pool": self.engine.pool.status()}
