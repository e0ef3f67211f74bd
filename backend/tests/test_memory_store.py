"""
Cinedex Backend: In-Memory Store Unit Tests
=============================================

What:  The in-memory repositories stand in for PostgreSQL in every API
       test, so they have to honour the same contract.

What we test:
    ✅ Insert assigns id/created_at/version; update bumps version
    ✅ Stale versions conflict; duplicate emails are rejected
    ✅ Title/genre filtering, sorting with id tie-break, pagination
    ✅ Token lookup by scope and expiry; permission grants
"""

from datetime import datetime, timedelta, timezone

import pytest

from cinedex.exceptions import DuplicateEmailError, EditConflictError, RecordNotFoundError
from cinedex.models import MOVIES_READ, MOVIES_WRITE, Movie, User
from cinedex.repositories.memory import MemoryStore
from cinedex.services.filters import Filters
from cinedex.services.movies import MOVIE_SORT_SAFE_LIST
from cinedex.services.tokens import SCOPE_ACTIVATION, SCOPE_AUTHENTICATION, generate_token


def _filters(**kwargs) -> Filters:
    return Filters(sort_safe_list=MOVIE_SORT_SAFE_LIST, **kwargs)


class TestMemoryMovies:
    def setup_method(self):
        self.store = MemoryStore()
        self.movies = self.store.models.movies

    async def _seed(self):
        for title, year, runtime, genres in [
            ("Black Panther", 2018, 134, ["action", "adventure"]),
            ("Moana", 2016, 107, ["animation", "adventure"]),
            ("The Breakfast Club", 1985, 96, ["comedy", "drama"]),
            ("Deadpool", 2016, 108, ["action", "comedy"]),
        ]:
            await self.movies.insert(Movie(title=title, year=year, runtime=runtime, genres=genres))

    @pytest.mark.asyncio
    async def test_insert_fills_system_fields(self):
        movie = await self.movies.insert(Movie(title="Moana", year=2016, runtime=107, genres=["animation"]))
        assert movie.id == 1
        assert movie.version == 1
        assert movie.created_at is not None

    @pytest.mark.asyncio
    async def test_get_returns_a_copy(self):
        await self._seed()
        movie = await self.movies.get(2)
        movie.title = "changed"
        assert (await self.movies.get(2)).title == "Moana"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("movie_id", [0, -1, 99])
    async def test_get_missing(self, movie_id):
        await self._seed()
        with pytest.raises(RecordNotFoundError):
            await self.movies.get(movie_id)

    @pytest.mark.asyncio
    async def test_update_bumps_version(self):
        await self._seed()
        movie = await self.movies.get(1)
        movie.runtime = 135
        await self.movies.update(movie)

        assert movie.version == 2
        stored = await self.movies.get(1)
        assert stored.runtime == 135
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_stale_update_conflicts(self):
        await self._seed()
        first = await self.movies.get(1)
        second = await self.movies.get(1)
        await self.movies.update(first)

        with pytest.raises(EditConflictError):
            await self.movies.update(second)

    @pytest.mark.asyncio
    async def test_delete(self):
        await self._seed()
        await self.movies.delete(3)
        with pytest.raises(RecordNotFoundError):
            await self.movies.delete(3)

    @pytest.mark.asyncio
    async def test_title_search_is_word_based_and_case_insensitive(self):
        await self._seed()
        movies, _ = await self.movies.get_all("black PANTHER", [], _filters())
        assert [m.title for m in movies] == ["Black Panther"]

        movies, _ = await self.movies.get_all("panth", [], _filters())
        assert movies == []

    @pytest.mark.asyncio
    async def test_genres_must_all_match(self):
        await self._seed()
        movies, meta = await self.movies.get_all("", ["action", "comedy"], _filters())
        assert [m.title for m in movies] == ["Deadpool"]
        assert meta.total_records == 1

    @pytest.mark.asyncio
    async def test_sort_ties_break_on_id(self):
        await self._seed()
        movies, _ = await self.movies.get_all("", [], _filters(sort="-year"))
        # Moana (2) and Deadpool (4) share 2016
        assert [m.id for m in movies] == [1, 2, 4, 3]

    @pytest.mark.asyncio
    async def test_pagination(self):
        await self._seed()
        movies, meta = await self.movies.get_all("", [], _filters(page=2, page_size=3))
        assert [m.id for m in movies] == [4]
        assert meta.to_dict() == {
            "current_page": 2,
            "page_size": 3,
            "first_page": 1,
            "last_page": 2,
            "total_records": 4,
        }

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self):
        await self._seed()
        movies, meta = await self.movies.get_all("", [], _filters(page=9))
        assert movies == []
        assert meta.to_dict() == {}


class TestMemoryUsersAndTokens:
    def setup_method(self):
        self.store = MemoryStore()
        self.models = self.store.models

    async def _user(self, email="alice@example.com", activated=False):
        user = User(name="Alice", email=email, password_hash=b"hash", activated=activated)
        return await self.models.users.insert(user)

    @pytest.mark.asyncio
    async def test_duplicate_email(self):
        await self._user()
        with pytest.raises(DuplicateEmailError):
            await self._user()

    @pytest.mark.asyncio
    async def test_get_by_email(self):
        created = await self._user()
        assert (await self.models.users.get_by_email("alice@example.com")).id == created.id
        with pytest.raises(RecordNotFoundError):
            await self.models.users.get_by_email("bob@example.com")

    @pytest.mark.asyncio
    async def test_update_user_conflict(self):
        await self._user()
        a = await self.models.users.get_by_email("alice@example.com")
        b = await self.models.users.get_by_email("alice@example.com")
        a.activated = True
        await self.models.users.update(a)
        with pytest.raises(EditConflictError):
            await self.models.users.update(b)

    @pytest.mark.asyncio
    async def test_get_for_token_checks_scope(self):
        user = await self._user()
        token = await self.models.tokens.new(user.id, timedelta(hours=1), SCOPE_ACTIVATION)

        found = await self.models.users.get_for_token(SCOPE_ACTIVATION, token.plaintext)
        assert found.id == user.id
        with pytest.raises(RecordNotFoundError):
            await self.models.users.get_for_token(SCOPE_AUTHENTICATION, token.plaintext)

    @pytest.mark.asyncio
    async def test_expired_token_is_not_found(self):
        user = await self._user()
        token = generate_token(user.id, timedelta(hours=1), SCOPE_AUTHENTICATION)
        token.expiry = datetime.now(timezone.utc) - timedelta(seconds=1)
        await self.models.tokens.insert(token)

        with pytest.raises(RecordNotFoundError):
            await self.models.users.get_for_token(SCOPE_AUTHENTICATION, token.plaintext)

    @pytest.mark.asyncio
    async def test_delete_all_for_user_is_scoped(self):
        user = await self._user()
        activation = await self.models.tokens.new(user.id, timedelta(hours=1), SCOPE_ACTIVATION)
        auth = await self.models.tokens.new(user.id, timedelta(hours=1), SCOPE_AUTHENTICATION)

        await self.models.tokens.delete_all_for_user(SCOPE_ACTIVATION, user.id)

        with pytest.raises(RecordNotFoundError):
            await self.models.users.get_for_token(SCOPE_ACTIVATION, activation.plaintext)
        assert (await self.models.users.get_for_token(SCOPE_AUTHENTICATION, auth.plaintext)).id == user.id

    @pytest.mark.asyncio
    async def test_permissions(self):
        user = await self._user()
        await self.models.permissions.add_for_user(user.id, MOVIES_READ, "movies:admin")

        permissions = await self.models.permissions.get_all_for_user(user.id)
        assert permissions.includes(MOVIES_READ)
        assert not permissions.includes(MOVIES_WRITE)
        assert not permissions.includes("movies:admin")

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_permissions(self):
        assert await self.models.permissions.get_all_for_user(42) == frozenset()
