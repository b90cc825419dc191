"""Durable key/value storage backends for the history log.

The history store only needs three operations on one fixed key: get,
set and remove. Backends:

- MemoryStorage: process-local dict (tests, throwaway sessions)
- SQLiteStorage: ``key_value`` table in a SQLite database
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlmodel import select

from satutoko.history.database import init_database
from satutoko.history.models import KeyValueItem

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Minimal async key/value persistence facility."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, blob: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage. Contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, blob: str) -> None:
        self.data[key] = blob

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SQLiteStorage:
    """Key/value storage in a SQLite database.

    The engine is created lazily on first access so that constructing
    the storage never touches the filesystem.

    Example::

        storage = SQLiteStorage(Path("console.db"))
        await storage.set("k", "v")
        await storage.close()
    """

    def __init__(self, db_path: Path, echo: bool = False) -> None:
        self.db_path = db_path
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker | None = None

    async def _sessions(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._engine, self._session_factory = await init_database(
                self.db_path, echo=self.echo
            )
            logger.debug(f"Opened history database at {self.db_path}")
        return self._session_factory

    async def get(self, key: str) -> str | None:
        session_factory = await self._sessions()
        async with session_factory() as session:
            result = await session.execute(
                select(KeyValueItem.value).where(KeyValueItem.key == key)
            )
            row = result.first()
            return row[0] if row else None

    async def set(self, key: str, blob: str) -> None:
        session_factory = await self._sessions()
        async with session_factory() as session:
            await session.merge(
                KeyValueItem(
                    key=key,
                    value=blob,
                    updated_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            await session.commit()

    async def remove(self, key: str) -> None:
        session_factory = await self._sessions()
        async with session_factory() as session:
            await session.execute(
                sa.delete(KeyValueItem).where(
                    KeyValueItem.key == key  # type: ignore[arg-type]
                )
            )
            await session.commit()

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
