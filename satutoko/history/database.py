"""Async SQLite engine setup for the history database."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from satutoko.history.models import KeyValueItem  # noqa: F401


async def create_engine_and_init(
    db_path: Path,
    echo: bool = False,
) -> AsyncEngine:
    """Create an async engine and make sure the schema exists.

    Configures WAL mode via a connection event listener.

    Args:
        db_path: Path to the SQLite database file. Parent directories
            are created if needed.
        echo: Whether to echo SQL statements (for debugging).

    Returns:
        An initialized AsyncEngine.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    return engine


async def init_database(
    db_path: Path,
    echo: bool = False,
) -> tuple[AsyncEngine, async_sessionmaker]:
    """Initialize the database and return engine + session factory."""
    engine = await create_engine_and_init(db_path, echo=echo)
    return engine, async_sessionmaker(engine, expire_on_commit=False)
