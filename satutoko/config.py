"""Console settings.

Settings are collected by the CLI from options that fall back to
``SATUTOKO_*`` environment variables, then passed around as one
ConsoleSettings value.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from pathlib import Path

from satutoko.history.store import HISTORY_CAPACITY, HISTORY_KEY
from satutoko.session.collaborator import ScrapeEngine
from satutoko.session.controller import DEFAULT_LIMIT

DEFAULT_DB_PATH = Path.home() / ".satu-toko" / "console.db"
DEFAULT_STREAM_TIMEOUT = 600.0


@dataclass
class ConsoleSettings:
    """Runtime configuration for a console instance.

    Attributes:
        db_path: SQLite file holding the history log. None keeps history
            in memory only.
        history_key: Storage key of the history blob.
        history_capacity: Maximum number of history entries kept.
        stream_timeout: Seconds to wait for a session to finish once
            accepted. None disables the timeout.
        default_limit: Products per query passed to the scrape engine.
        engine: ``module.path:callable`` of the scrape engine, if any.
    """

    db_path: Path | None = field(default_factory=lambda: DEFAULT_DB_PATH)
    history_key: str = HISTORY_KEY
    history_capacity: int = HISTORY_CAPACITY
    stream_timeout: float | None = DEFAULT_STREAM_TIMEOUT
    default_limit: int = DEFAULT_LIMIT
    engine: str | None = None

    def __post_init__(self) -> None:
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")
        if self.default_limit < 1:
            raise ValueError("default_limit must be at least 1")
        if not self.stream_timeout:
            self.stream_timeout = None


def import_engine(engine_path: str) -> ScrapeEngine:
    """Import a scrape engine from a ``"module.path:name"`` string.

    Raises:
        ValueError: If the format is invalid, the import fails, or the
            attribute is not callable.
    """
    if ":" not in engine_path:
        raise ValueError(
            f"Invalid engine path '{engine_path}'. "
            "Expected format: 'module.path:name'"
        )

    module_path, attr_name = engine_path.rsplit(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ValueError(
            f"Could not import module '{module_path}': {e}"
        ) from e

    engine = getattr(module, attr_name, None)
    if engine is None:
        raise ValueError(f"Module '{module_path}' has no '{attr_name}'")
    if not callable(engine):
        raise ValueError(f"'{engine_path}' is not callable")
    return engine
