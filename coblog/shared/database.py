"""Database setup and configuration using async SQLAlchemy."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy import MetaData
from sqlalchemy import event
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from coblog.shared.config import Settings
from coblog.shared.config import get_settings

logger = logging.getLogger(__name__)

# Database naming convention for consistent constraint names
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    """Timezone-aware current time used for client-side timestamp defaults."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models with common timestamp fields."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # Python-side defaults keep the attributes loaded after flush, so async
    # code never triggers a lazy refresh on them.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        doc="Timestamp when the record was created"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        doc="Timestamp when the record was last updated"
    )


# Global engine and session maker
_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def create_engine(settings: Settings) -> AsyncEngine:
    """Create async SQLAlchemy engine with proper configuration."""
    database_url = settings.effective_database_url

    # Engine configuration
    engine_kwargs = {
        "echo": settings.db_debug or (settings.debug and settings.log_level == "DEBUG"),
        "pool_pre_ping": True,
    }

    if _is_sqlite(database_url):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url:
            # A single shared connection keeps the in-memory database alive
            engine_kwargs["poolclass"] = StaticPool
    else:
        connect_args = {"timeout": settings.db_connect_timeout}
        if settings.db_ssl:
            connect_args["ssl"] = "require"
        engine_kwargs.update({
            "pool_size": 20,
            "max_overflow": 30,
            "pool_recycle": 3600,  # 1 hour
            "connect_args": connect_args,
        })

    engine = create_async_engine(database_url, **engine_kwargs)

    if _is_sqlite(database_url):
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enforce foreign keys so association rows cascade on delete."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_engine() -> AsyncEngine:
    """Get the global database engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(get_settings())
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the global session maker."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


async def check_connection(engine: AsyncEngine) -> None:
    """Run a lightweight query; raises when the database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def init_database() -> None:
    """Initialize database connection and optionally test it."""
    global _engine, _session_maker

    settings = get_settings()
    logger.info(
        "Initializing database connection",
        extra={"ssl": settings.db_ssl, "environment": settings.environment},
    )

    _engine = create_engine(settings)
    _session_maker = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    # The connection test only reports; startup continues either way
    if settings.should_test_connection:
        try:
            await check_connection(_engine)
            logger.info("Database connection test succeeded")
        except Exception as e:
            logger.error(
                f"Database connection test failed: {e}",
                extra={"cause": repr(e.__cause__ or e.__context__)},
            )


async def close_database() -> None:
    """Close database connections."""
    global _engine, _session_maker

    if _engine:
        logger.info("Closing database connections")
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create all database tables that do not exist yet."""
    # Importing models registers their tables on Base.metadata
    import coblog.web.models  # noqa: F401

    logger.info("Creating database tables")
    engine = engine or get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")
