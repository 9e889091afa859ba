"""Test configuration and fixtures for the coblog project."""

from __future__ import annotations

import os
import tempfile
import uuid
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker

from coblog.shared.config import override_settings
from coblog.shared.database import Base
from coblog.shared.database import create_engine
import coblog.web.models  # noqa: F401


@pytest.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine on a temporary SQLite file."""
    # Create a unique temporary database file for complete isolation
    temp_dir = tempfile.mkdtemp()
    db_path = os.path.join(temp_dir, f"test_db_{uuid.uuid4().hex}.db")

    settings = override_settings(
        environment="testing",
        database_url=f"sqlite+aiosqlite:///{db_path}",
    )
    engine = create_engine(settings)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        yield engine

    finally:
        await engine.dispose()
        if os.path.exists(db_path):
            os.remove(db_path)
        if os.path.exists(temp_dir):
            os.rmdir(temp_dir)


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def owner_id() -> str:
    """Owner identifier as a client would generate it."""
    return str(uuid.uuid4())


@pytest.fixture
def other_owner_id() -> str:
    """A second, unrelated owner identifier."""
    return str(uuid.uuid4())
