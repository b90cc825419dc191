"""FastAPI application for the operator console.

This module provides the main FastAPI application with:
- Lifespan context manager that builds the Console and loads history
- Dependency accessor for the Console
- Live snapshot push to WebSocket clients on every change
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from satutoko.config import ConsoleSettings
from satutoko.console import Console, build_console

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from satutoko.history.storage import KeyValueStorage
    from satutoko.session.collaborator import ScrapeEngine

logger = logging.getLogger(__name__)

# Global console instance (set during lifespan)
_console: Console | None = None


def get_console() -> Console:
    """Get the global console instance.

    Raises:
        RuntimeError: If the console is not initialized.
    """
    if _console is None:
        raise RuntimeError("Console not initialized")
    return _console


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the console on startup and tear it down on shutdown."""
    global _console

    from satutoko.web.websocket import get_broadcaster

    settings = getattr(app.state, "settings", None) or ConsoleSettings()
    _console = await build_console(
        settings,
        engine=getattr(app.state, "engine", None),
        storage=getattr(app.state, "storage", None),
    )
    remove_listener = _console.add_listener(get_broadcaster().schedule)
    logger.info(
        f"Console ready with {len(_console.history.list())} history entries"
    )

    yield

    remove_listener()
    await _console.aclose()
    _console = None


def create_app(
    settings: ConsoleSettings | None = None,
    engine: ScrapeEngine | None = None,
    storage: KeyValueStorage | None = None,
) -> FastAPI:
    """Create a new FastAPI application.

    Args:
        settings: Console settings. Defaults to ConsoleSettings().
        engine: Scrape engine, overriding ``settings.engine``.
        storage: History storage, overriding ``settings.db_path``.

    Returns:
        Configured FastAPI application.
    """
    from satutoko.web.routes import (
        console_router,
        expansion_router,
        history_router,
        queries_router,
        search_router,
    )
    from satutoko.web.websocket import router as websocket_router

    app = FastAPI(
        title="Satu Toko Console",
        description="Multi-query marketplace search console",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config in app state for lifespan access
    app.state.settings = settings or ConsoleSettings()
    app.state.engine = engine
    app.state.storage = storage

    app.include_router(console_router)
    app.include_router(queries_router)
    app.include_router(search_router)
    app.include_router(history_router)
    app.include_router(expansion_router)
    app.include_router(websocket_router)

    return app
