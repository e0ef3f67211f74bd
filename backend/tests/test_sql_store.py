"""
Cinedex Backend: SQL Repository Unit Tests
============================================

What:  Error translation and unit-of-work behaviour of the PostgreSQL
       store, exercised against a mocked AsyncSession (no real DB).

What we test:
    ✅ Non-positive ids short-circuit to RecordNotFoundError
    ✅ StaleDataError → EditConflictError
    ✅ IntegrityError on users_email_key → DuplicateEmailError
    ✅ Any other store failure or a timeout → DatabaseError
    ✅ Commit on success, rollback on failure
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from cinedex.config import settings
from cinedex.exceptions import (
    DatabaseError,
    DuplicateEmailError,
    EditConflictError,
    RecordNotFoundError,
)
from cinedex.models import Movie, User
from cinedex.repositories.sql import (
    SqlMovieRepository,
    SqlPermissionRepository,
    SqlStore,
    SqlUserRepository,
)
from cinedex.services.filters import Filters
from cinedex.services.movies import MOVIE_SORT_SAFE_LIST


def _integrity_error(detail: str) -> IntegrityError:
    return IntegrityError("INSERT INTO users ...", {}, Exception(detail))


class TestSqlMovieRepository:
    @pytest.mark.asyncio
    async def test_get_non_positive_id_skips_the_query(self, mock_db_session):
        with pytest.raises(RecordNotFoundError):
            await SqlMovieRepository(mock_db_session).get(0)
        mock_db_session.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_missing_row(self, mock_db_session):
        mock_db_session.get.return_value = None
        with pytest.raises(RecordNotFoundError):
            await SqlMovieRepository(mock_db_session).get(7)

    @pytest.mark.asyncio
    async def test_get_found(self, mock_db_session):
        movie = Movie(id=7, title="Moana", year=2016, runtime=107, genres=["animation"], version=1)
        mock_db_session.get.return_value = movie
        assert await SqlMovieRepository(mock_db_session).get(7) is movie

    @pytest.mark.asyncio
    async def test_insert_adds_and_flushes(self, mock_db_session):
        movie = Movie(title="Moana", year=2016, runtime=107, genres=["animation"])
        await SqlMovieRepository(mock_db_session).insert(movie)
        mock_db_session.add.assert_called_once_with(movie)
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_version_is_edit_conflict(self, mock_db_session):
        mock_db_session.flush.side_effect = StaleDataError("expected to update 1 row(s); 0 were matched")
        with pytest.raises(EditConflictError):
            await SqlMovieRepository(mock_db_session).update(Movie(id=1, version=1))

    @pytest.mark.asyncio
    async def test_delete_missing_row(self, mock_db_session):
        mock_db_session.execute.return_value = MagicMock(rowcount=0)
        with pytest.raises(RecordNotFoundError):
            await SqlMovieRepository(mock_db_session).delete(5)

    @pytest.mark.asyncio
    async def test_delete_non_positive_id(self, mock_db_session):
        with pytest.raises(RecordNotFoundError):
            await SqlMovieRepository(mock_db_session).delete(-3)
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_all_reads_window_count(self, mock_db_session):
        movie = Movie(id=1, title="Moana", year=2016, runtime=107, genres=["animation"], version=1)
        result = MagicMock()
        result.all.return_value = [(movie, 21)]
        mock_db_session.execute.return_value = result

        filters = Filters(page=2, page_size=20, sort="-year", sort_safe_list=MOVIE_SORT_SAFE_LIST)
        movies, meta = await SqlMovieRepository(mock_db_session).get_all("moana", ["animation"], filters)

        assert movies == [movie]
        assert meta.total_records == 21
        assert meta.last_page == 2

    @pytest.mark.asyncio
    async def test_get_all_empty(self, mock_db_session):
        result = MagicMock()
        result.all.return_value = []
        mock_db_session.execute.return_value = result

        filters = Filters(sort_safe_list=MOVIE_SORT_SAFE_LIST)
        movies, meta = await SqlMovieRepository(mock_db_session).get_all("", [], filters)
        assert movies == []
        assert meta.to_dict() == {}


class TestSqlUserRepository:
    @pytest.mark.asyncio
    async def test_duplicate_email(self, mock_db_session):
        mock_db_session.flush.side_effect = _integrity_error(
            'duplicate key value violates unique constraint "users_email_key"'
        )
        with pytest.raises(DuplicateEmailError):
            await SqlUserRepository(mock_db_session).insert(User(name="A", email="a@b.com"))

    @pytest.mark.asyncio
    async def test_other_integrity_error_is_database_error(self, mock_db_session):
        mock_db_session.flush.side_effect = _integrity_error('null value in column "name"')
        with pytest.raises(DatabaseError):
            await SqlUserRepository(mock_db_session).insert(User(name="A", email="a@b.com"))

    @pytest.mark.asyncio
    async def test_update_duplicate_email(self, mock_db_session):
        mock_db_session.flush.side_effect = _integrity_error("users_email_key")
        with pytest.raises(DuplicateEmailError):
            await SqlUserRepository(mock_db_session).update(User(id=1, name="A", email="a@b.com"))

    @pytest.mark.asyncio
    async def test_get_for_token_not_found(self, mock_db_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db_session.execute.return_value = result
        with pytest.raises(RecordNotFoundError):
            await SqlUserRepository(mock_db_session).get_for_token("authentication", "A" * 26)

    @pytest.mark.asyncio
    async def test_get_by_email_found(self, mock_db_session):
        user = User(id=3, name="A", email="a@b.com", created_at=datetime.now(timezone.utc))
        result = MagicMock()
        result.scalar_one_or_none.return_value = user
        mock_db_session.execute.return_value = result
        assert await SqlUserRepository(mock_db_session).get_by_email("a@b.com") is user


class TestSqlPermissionRepository:
    @pytest.mark.asyncio
    async def test_get_all_for_user(self, mock_db_session):
        result = MagicMock()
        result.scalars.return_value.all.return_value = ["movies:read"]
        mock_db_session.execute.return_value = result

        permissions = await SqlPermissionRepository(mock_db_session).get_all_for_user(1)
        assert permissions.includes("movies:read")
        assert not permissions.includes("movies:write")

    @pytest.mark.asyncio
    async def test_add_nothing_skips_the_query(self, mock_db_session):
        await SqlPermissionRepository(mock_db_session).add_for_user(1)
        mock_db_session.execute.assert_not_awaited()


class TestBounded:
    @pytest.mark.asyncio
    async def test_timeout_becomes_database_error(self, mock_db_session, monkeypatch):
        monkeypatch.setattr(settings, "db_query_timeout", 0.01)

        async def slow_get(*args, **kwargs):
            await asyncio.sleep(1)

        mock_db_session.get.side_effect = slow_get
        with pytest.raises(DatabaseError) as exc_info:
            await SqlMovieRepository(mock_db_session).get(1)
        assert exc_info.value.context["reason"] == "timeout"

    @pytest.mark.asyncio
    async def test_driver_error_becomes_database_error(self, mock_db_session):
        mock_db_session.get.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))
        with pytest.raises(DatabaseError) as exc_info:
            await SqlMovieRepository(mock_db_session).get(1)
        assert exc_info.value.context["error_type"] == "OperationalError"


class TestSqlStoreUnitOfWork:
    def setup_method(self):
        self.store = SqlStore(engine=MagicMock())

    def _use_session(self, session):
        session.__aenter__.return_value = session
        session.__aexit__.return_value = False
        self.store.session_factory = MagicMock(return_value=session)

    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_db_session):
        self._use_session(mock_db_session)
        async with self.store.unit_of_work() as models:
            assert isinstance(models.movies, SqlMovieRepository)
        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises_application_errors(self, mock_db_session):
        self._use_session(mock_db_session)
        with pytest.raises(RecordNotFoundError):
            async with self.store.unit_of_work():
                raise RecordNotFoundError()
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_commit_is_database_error(self, mock_db_session):
        self._use_session(mock_db_session)
        mock_db_session.commit.side_effect = OperationalError("COMMIT", {}, Exception("gone"))
        with pytest.raises(DatabaseError):
            async with self.store.unit_of_work():
                pass
        mock_db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self):
        self.store.engine = AsyncMock()
        await self.store.close()
        self.store.engine.dispose.assert_awaited_once()
