"""Snapshot endpoint for the whole console state."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from satutoko.console import Console, ConsoleSnapshot
from satutoko.web.app import get_console

router = APIRouter(prefix="/api/console", tags=["console"])


@router.get("", response_model=ConsoleSnapshot)
async def get_snapshot(
    console: Annotated[Console, Depends(get_console)],
) -> ConsoleSnapshot:
    """Return the current queries, results, status, expansion and history."""
    return console.snapshot()
