"""Persisted session history.

This package provides:
- HistoryStore: bounded newest-first log of completed sessions
- Storage backends for the serialized log (in-memory, SQLite)
"""

from satutoko.history.models import HistoryEntry, KeyValueItem
from satutoko.history.storage import (
    KeyValueStorage,
    MemoryStorage,
    SQLiteStorage,
)
from satutoko.history.store import (
    HISTORY_CAPACITY,
    HISTORY_KEY,
    HistoryStore,
)

__all__ = [
    "HISTORY_CAPACITY",
    "HISTORY_KEY",
    "HistoryEntry",
    "HistoryStore",
    "KeyValueItem",
    "KeyValueStorage",
    "MemoryStorage",
    "SQLiteStorage",
]
