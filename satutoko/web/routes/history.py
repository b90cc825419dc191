"""REST API endpoints for session history.

This module provides endpoints for:
- Listing history entries (newest first)
- Getting one entry with its full results
- Loading an entry into the live view
- Deleting one entry or clearing the log
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from satutoko.common.exceptions import HistoryEntryNotFound, SessionBusyError
from satutoko.console import Console, HistoryItemView, history_item
from satutoko.history.models import HistoryEntry
from satutoko.web.app import get_console

router = APIRouter(prefix="/api/history", tags=["history"])


class HistoryListResponse(BaseModel):
    """Response model for listing history."""

    items: list[HistoryItemView]
    total: int
    capacity: int


def _not_found(e: HistoryEntryNotFound) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail=e.message
    )


@router.get("", response_model=HistoryListResponse)
async def list_history(
    console: Annotated[Console, Depends(get_console)],
) -> HistoryListResponse:
    entries = console.history.list()
    return HistoryListResponse(
        items=[history_item(entry) for entry in entries],
        total=len(entries),
        capacity=console.history.capacity,
    )


@router.get("/{entry_id}", response_model=HistoryEntry)
async def get_history_entry(
    entry_id: int,
    console: Annotated[Console, Depends(get_console)],
) -> HistoryEntry:
    """Get one entry including its full result snapshot.

    Raises:
        HTTPException: 404 if the entry does not exist.
    """
    try:
        return console.get_history_entry(entry_id)
    except HistoryEntryNotFound as e:
        raise _not_found(e) from e


@router.post("/{entry_id}/load", response_model=HistoryItemView)
async def load_history_entry(
    entry_id: int,
    console: Annotated[Console, Depends(get_console)],
) -> HistoryItemView:
    """Replay an entry's queries, platform and results into the console.

    Raises:
        HTTPException: 404 if the entry does not exist.
        HTTPException: 409 if a search is loading.
    """
    try:
        entry = console.load_history(entry_id)
    except HistoryEntryNotFound as e:
        raise _not_found(e) from e
    except SessionBusyError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=e.message
        ) from e
    return history_item(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history_entry(
    entry_id: int,
    console: Annotated[Console, Depends(get_console)],
) -> Response:
    """Delete one entry. Unknown ids are ignored."""
    await console.delete_history(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(
    console: Annotated[Console, Depends(get_console)],
) -> Response:
    await console.clear_history()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
