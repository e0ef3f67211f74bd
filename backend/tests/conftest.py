"""
Cinedex Backend: Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   The API runs against the in-memory store and a recording mailer, so
       no PostgreSQL or SMTP server is needed. SQL repositories are tested
       separately against a mocked AsyncSession.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock AsyncSession for SQL repository tests
    ├── memory_store:    Empty in-memory store
    ├── mailer:          RecordingMailer (renders, never sends)
    ├── app:             create_app() wired to the two above, no rate limiter
    ├── test_client:     HTTPX AsyncClient bound to `app`
    └── auth_headers:    Factory: create a user, return its Bearer header
"""

import os

# Override settings for testing BEFORE any cinedex imports
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LIMITER_ENABLED"] = "false"
os.environ["BCRYPT_COST"] = "4"
os.environ["MOVIES_PUBLIC_READ"] = "true"
os.environ["CORS_TRUSTED_ORIGINS"] = "http://localhost:9000 http://localhost:9001"

from typing import Any, Dict, List, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cinedex.main import create_app
from cinedex.models import MOVIES_READ, MOVIES_WRITE, Movie, User
from cinedex.repositories.memory import MemoryStore
from cinedex.services.mailer import Mailer, TemplateRenderer
from cinedex.services.passwords import Password
from cinedex.services.tokens import AUTHENTICATION_TTL, SCOPE_AUTHENTICATION


class RecordingMailer(Mailer):
    """
    Renders every message (so a missing template variable still fails the
    test) and records it instead of talking to SMTP.
    """

    def __init__(self) -> None:
        self.renderer = TemplateRenderer()
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    async def send(self, recipient: str, template_name: str, data: Dict[str, Any]) -> None:
        self.renderer.render(template_name, data)
        self.sent.append((recipient, template_name, data))


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get_movie(mock_db_session):
            mock_db_session.get.return_value = movie
            result = await SqlMovieRepository(mock_db_session).get(1)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(memory_store, mailer):
    return create_app(store=memory_store, mailer=mailer)


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    ASGITransport does not run the lifespan, so tests that spawn background
    work await `app.state.background.wait()` themselves.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers(memory_store):
    """
    Factory for authenticated callers.

    Usage:
        headers = await auth_headers(permissions=(MOVIES_READ,))
        await test_client.post("/v1/movies", json=..., headers=headers)
    """
    counter = {"n": 0}

    async def _make(
        permissions=(MOVIES_READ, MOVIES_WRITE),
        activated: bool = True,
        email: str = "",
    ) -> Dict[str, str]:
        counter["n"] += 1
        user = User(
            name=f"User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=b"not-a-real-hash",
            activated=activated,
        )
        models = memory_store.models
        await models.users.insert(user)
        await models.permissions.add_for_user(user.id, *permissions)
        token = await models.tokens.new(user.id, AUTHENTICATION_TTL, SCOPE_AUTHENTICATION)
        return {"Authorization": f"Bearer {token.plaintext}"}

    return _make


async def insert_user_with_password(
    store: MemoryStore, email: str, password: str, activated: bool = True
) -> User:
    """A user with a real (cost 4) bcrypt hash, for login tests."""
    credential = Password()
    await credential.set(password)
    user = User(name="Ada", email=email, password_hash=credential.hash, activated=activated)
    await store.models.users.insert(user)
    return user


async def insert_movies(store: MemoryStore, *movies: Tuple[str, int, int, List[str]]) -> List[Movie]:
    inserted = []
    for title, year, runtime, genres in movies:
        movie = Movie(title=title, year=year, runtime=runtime, genres=genres)
        inserted.append(await store.models.movies.insert(movie))
    return inserted
