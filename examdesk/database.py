"""Database engine, session management, and table creation."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import ExamDeskConfig
from .models.base import Base

logger = logging.getLogger("examdesk.database")

_engine = None
_session_factory = None


def get_engine(config: ExamDeskConfig):
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        connect_args = {}
        if config.database_url.startswith("sqlite"):
            connect_args["timeout"] = 30
        _engine = create_async_engine(
            config.database_url,
            echo=config.debug,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    return _engine


def get_session_factory(config: ExamDeskConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine(config)
        _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory


async def create_tables(config: ExamDeskConfig) -> None:
    """Create all database tables."""
    engine = get_engine(config)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured for %s", engine.url.render_as_string(hide_password=True))


async def close_engine() -> None:
    """Close the database engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
