"""Bounded, persisted log of completed sessions.

The log is kept newest first and capped at ``capacity`` entries; the
oldest entry is evicted when a new one would exceed the cap. The whole
log is serialized as one JSON blob under a single storage key and is
rewritten in full on every change.

Persistence is fail-open:

- A read failure or an unparseable blob at startup means "no history".
- A write failure is logged and reported through ``on_warning``; the
  in-memory log stays authoritative for the rest of the process.

Entries are snapshots. Recording deep-copies the result set, and
:meth:`HistoryStore.load` hands out fresh copies, so nothing done to a
live result set can reach a stored entry.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from pydantic import TypeAdapter, ValidationError

from satutoko.common.exceptions import PersistenceFailure
from satutoko.data_types import Platform, ShopResult, total_product_count
from satutoko.history.models import HistoryEntry
from satutoko.history.storage import KeyValueStorage

logger = logging.getLogger(__name__)

HISTORY_KEY = "satutoko.history"
HISTORY_CAPACITY = 20

_ENTRIES = TypeAdapter(list[HistoryEntry])


class HistoryStore:
    """History log backed by a :class:`KeyValueStorage`.

    Call :meth:`initialize` once at startup before using the store.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = HISTORY_KEY,
        capacity: int = HISTORY_CAPACITY,
        on_warning: Callable[[PersistenceFailure], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.storage = storage
        self.key = key
        self.capacity = capacity
        self.on_warning = on_warning
        self._clock = clock
        self._entries: list[HistoryEntry] = []
        self._last_id = 0
        self.last_failure: PersistenceFailure | None = None

    async def initialize(self) -> list[HistoryEntry]:
        """Load the persisted log. Never raises for bad or missing data."""
        try:
            blob = await self.storage.get(self.key)
        except Exception as e:
            failure = PersistenceFailure("read", self.key, e)
            logger.warning(f"{failure}; starting with empty history")
            self.last_failure = failure
            blob = None

        self._entries = self._parse(blob)
        self._last_id = max((entry.id for entry in self._entries), default=0)
        logger.info(f"Loaded {len(self._entries)} history entries")
        return self.list()

    def _parse(self, blob: str | None) -> list[HistoryEntry]:
        if blob is None:
            return []
        try:
            raw = json.loads(blob)
        except ValueError as e:
            logger.warning(f"Discarding unreadable history blob: {e}")
            return []
        if not isinstance(raw, list):
            logger.warning(
                f"Discarding history blob of type {type(raw).__name__}"
            )
            return []

        entries: list[HistoryEntry] = []
        for item in raw:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed history entry: "
                    f"{e.error_count()} validation errors"
                )
        entries.sort(key=lambda entry: entry.id, reverse=True)
        return entries[: self.capacity]

    def list(self) -> list[HistoryEntry]:
        """Copies of the entries, newest first."""
        return [entry.model_copy(deep=True) for entry in self._entries]

    def get(self, entry_id: int) -> HistoryEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry.model_copy(deep=True)
        return None

    def _next_id(self, now: float) -> int:
        # Millisecond timestamps, bumped past the last id on collisions.
        self._last_id = max(int(now * 1000), self._last_id + 1)
        return self._last_id

    async def record(
        self,
        queries: Sequence[str],
        platform: Platform | str,
        results: Sequence[ShopResult],
    ) -> HistoryEntry:
        """Snapshot a finished session at the head of the log."""
        now = self._clock()
        snapshot = tuple(shop.model_copy(deep=True) for shop in results)
        entry = HistoryEntry(
            id=self._next_id(now),
            timestamp=datetime.fromtimestamp(now, timezone.utc).isoformat(),
            queries=tuple(queries),
            platform=Platform(platform),
            result_count=total_product_count(snapshot),
            results=snapshot,
        )

        evicted = max(0, len(self._entries) + 1 - self.capacity)
        self._entries = [entry, *self._entries][: self.capacity]
        if evicted:
            logger.debug(f"Evicted {evicted} oldest history entries")
        logger.info(
            f"Recorded history entry {entry.id} "
            f"({entry.result_count} products)"
        )

        await self._persist()
        return entry.model_copy(deep=True)

    async def delete(self, entry_id: int) -> bool:
        """Remove one entry. Unknown ids are ignored.

        Returns:
            True if an entry was removed.
        """
        remaining = [entry for entry in self._entries if entry.id != entry_id]
        if len(remaining) == len(self._entries):
            return False
        self._entries = remaining
        await self._persist()
        return True

    async def clear(self) -> None:
        """Empty the log and remove the persisted blob."""
        self._entries = []
        try:
            await self.storage.remove(self.key)
        except Exception as e:
            self._warn(PersistenceFailure("remove", self.key, e))

    def load(
        self, entry: HistoryEntry
    ) -> tuple[list[str], Platform, list[ShopResult]]:
        """Project an entry into fresh ``(queries, platform, results)``.

        The log itself is left untouched.
        """
        return (
            list(entry.queries),
            entry.platform,
            [shop.model_copy(deep=True) for shop in entry.results],
        )

    async def _persist(self) -> None:
        blob = _ENTRIES.dump_json(self._entries).decode("utf-8")
        try:
            await self.storage.set(self.key, blob)
        except Exception as e:
            self._warn(PersistenceFailure("write", self.key, e))

    def _warn(self, failure: PersistenceFailure) -> None:
        logger.warning(str(failure))
        self.last_failure = failure
        if self.on_warning is not None:
            self.on_warning(failure)
