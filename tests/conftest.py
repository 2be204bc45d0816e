"""
Shared test fixtures and configuration for entire test suite.

Provides: In-memory database engine/sessions, user factory, a no-op trace recorder
Dependencies: pytest, sqlalchemy, aiosqlite
System role: Test infrastructure and fixture management
"""

import uuid

import pytest


@pytest.fixture
async def test_engine():
    """
    Create in-memory SQLite async engine with all tables.

    Yields:
        AsyncEngine: Engine sharing one connection across sessions
    """
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import StaticPool

    from market_map.boundary.db import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    """Session factory bound to the in-memory engine."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_async_db(test_session_factory):
    """
    Create a database session for one test.

    Yields:
        AsyncSession: Test database session with rollback on exit
    """
    async with test_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_user(test_async_db):
    """
    Factory creating committed users.

    Returns:
        Callable: async (username) -> UserModel
    """
    from market_map.boundary.db.CRUD.user_crud import user_crud

    async def _make(username: str = "atlas123"):
        user = await user_crud.create(
            test_async_db,
            username=username,
            username_key=username.lower(),
        )
        await test_async_db.commit()
        return user

    return _make


@pytest.fixture
def disabled_tracer():
    """Trace recorder without a Langfuse client (records nothing)."""
    from market_map.observability.failure_window import FailureWindowTracker
    from market_map.observability.trace_recorder import TraceRecorder

    return TraceRecorder(client=None, tracker=FailureWindowTracker())


@pytest.fixture
def research_settings():
    """Default session lifecycle settings."""
    from market_map.configs.research import ResearchSettings

    return ResearchSettings()


@pytest.fixture
def session_id():
    """Generate a test session ID."""
    return uuid.uuid4()
