"""Async SQLModel engine and session management."""

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from inventrack.config import settings

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(settings.database_url)
async_session = make_session_factory(engine)


def _ensure_sqlite_dir(bind: AsyncEngine) -> None:
    url = bind.url
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def create_db_and_tables(bind: AsyncEngine = engine) -> None:
    """Create all tables. Called on startup."""
    # Import models so the metadata is populated
    import inventrack.models  # noqa: F401

    _ensure_sqlite_dir(bind)
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info(f"Database ready at {bind.url.render_as_string(hide_password=True)}")

