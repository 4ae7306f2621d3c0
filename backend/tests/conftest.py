"""
MemoHub Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own in-memory SQLite database (aiosqlite,
       StaticPool so all sessions share the one connection) with the full
       schema created from the ORM metadata.

Fixture Hierarchy:
    engine ─┬─ db_session            service-level tests
            └─ test_client           HTTP tests (get_db_session overridden)
    make_user / make_team            committed rows for the common setups
    search_store                     fresh in-memory key-value store
    mock_db_session                  AsyncMock session for failure paths
"""

import os
import uuid
from datetime import timedelta
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

# Override settings BEFORE any memohub import reads them
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["RETRY_MIN_WAIT"] = "1"
os.environ["RETRY_MAX_WAIT"] = "5"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import memohub.models  # noqa: F401  (registers every table)
from memohub.database import Base, get_db_session
from memohub.enums import TeamRole
from memohub.models.common import utc_now
from memohub.models.team import Team, TeamMember
from memohub.models.user import User
from memohub.security import create_access_token, hash_password
from memohub.services.search_store import InMemoryKeyValueStore, get_search_store

# bcrypt is slow; hash once for every factory-made user
DEFAULT_PASSWORD = "correct-horse"
_DEFAULT_HASH = hash_password(DEFAULT_PASSWORD)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    A session for calling services directly.

    Services only flush. A constraint failure undoes only its own savepoint,
    so earlier work in the test survives it.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """AsyncMock session for tests that only need to script store failures."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Row factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user(db_session):
    """
    Usage:
        alice = await make_user("Alice")            # alice@example.com
        bob = await make_user("Bob", "b@x.io")
    """
    async def _make(name: str = "Alice", email: Optional[str] = None) -> User:
        user = User(
            name=name,
            email=(email or f"{name.lower()}@example.com").lower(),
            password_hash=_DEFAULT_HASH,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_team(db_session):
    """
    Usage:
        team = await make_team(owner, admin=[carol], member=[bob])

    Returns the Team; memberships are committed rows.
    """
    async def _make(owner: User, /, name: Optional[str] = None, **roles) -> Team:
        team = Team(name=name or f"Team {uuid.uuid4().hex[:6]}")
        db_session.add(team)
        await db_session.flush()
        # Distinct join times in the past, in argument order
        joined = utc_now() - timedelta(hours=1)
        db_session.add(TeamMember(team_id=team.id, user_id=owner.id, role=TeamRole.OWNER, joined_at=joined))
        for role_name, users in roles.items():
            for user in users:
                joined += timedelta(seconds=1)
                db_session.add(
                    TeamMember(team_id=team.id, user_id=user.id, role=TeamRole(role_name), joined_at=joined)
                )
        await db_session.commit()
        return team

    return _make


async def membership(db: AsyncSession, team: Team, user: User) -> TeamMember:
    """The TeamMember row of `user` in `team` (test helper, not a fixture)."""
    result = await db.execute(
        select(TeamMember)
        .where(TeamMember.team_id == team.id, TeamMember.user_id == user.id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def search_store():
    return InMemoryKeyValueStore()


@pytest_asyncio.fixture
async def test_client(session_factory, search_store):
    """
    HTTPX AsyncClient talking to the app in-process.

    One session and transaction per request, committed on success and
    rolled back on error, exactly like the production dependency.
    """
    from memohub.main import app

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_search_store] = lambda: search_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
