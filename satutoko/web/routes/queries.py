"""REST API endpoints for editing the query set.

This module provides endpoints for:
- Adding a query
- Removing a query by position
- Updating the input buffer
- Applying editing keys (Enter, comma, Backspace)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from satutoko.console import Console
from satutoko.web.app import get_console

router = APIRouter(prefix="/api/queries", tags=["queries"])


class QueriesResponse(BaseModel):
    """Response model for the query set."""

    queries: list[str]
    input: str


class AddQueryRequest(BaseModel):
    raw: str = Field(..., description="Query text; trimmed before adding")


class InputRequest(BaseModel):
    text: str = Field(..., description="Current input buffer")


class KeyRequest(BaseModel):
    key: str = Field(
        ..., description="Key name, e.g. 'Enter', ',', 'Backspace'"
    )


class KeyResponse(QueriesResponse):
    handled: bool


def _queries(console: Console) -> QueriesResponse:
    return QueriesResponse(
        queries=list(console.query_set.tags),
        input=console.query_set.buffer,
    )


@router.get("", response_model=QueriesResponse)
async def list_queries(
    console: Annotated[Console, Depends(get_console)],
) -> QueriesResponse:
    return _queries(console)


@router.post("", response_model=QueriesResponse)
async def add_query(
    request: AddQueryRequest,
    console: Annotated[Console, Depends(get_console)],
) -> QueriesResponse:
    """Add a query. Blank and duplicate queries are ignored."""
    console.add_query(request.raw)
    return _queries(console)


@router.delete("/{index}", response_model=QueriesResponse)
async def remove_query(
    index: int,
    console: Annotated[Console, Depends(get_console)],
) -> QueriesResponse:
    """Remove the query at ``index``.

    Raises:
        HTTPException: 404 if the index is out of range.
    """
    try:
        console.remove_query(index)
    except IndexError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    return _queries(console)


@router.put("/input", response_model=QueriesResponse)
async def set_input(
    request: InputRequest,
    console: Annotated[Console, Depends(get_console)],
) -> QueriesResponse:
    console.set_input(request.text)
    return _queries(console)


@router.post("/keys", response_model=KeyResponse)
async def press_key(
    request: KeyRequest,
    console: Annotated[Console, Depends(get_console)],
) -> KeyResponse:
    """Apply an editing key to the input buffer and query set."""
    handled = console.press_key(request.key)
    current = _queries(console)
    return KeyResponse(
        queries=current.queries, input=current.input, handled=handled
    )
