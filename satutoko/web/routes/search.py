"""REST API endpoint for starting a search."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from satutoko.common.exceptions import QueryValidationError, SessionBusyError
from satutoko.console import Console
from satutoko.data_types import Platform
from satutoko.web.app import get_console

router = APIRouter(prefix="/api/search", tags=["search"])


class SearchRequest(BaseModel):
    """Request model for starting a search."""

    platform: Platform | None = Field(
        default=None,
        description="Marketplace to search; defaults to the selected one",
    )
    limit: int | None = Field(
        default=None, ge=1, description="Products per query"
    )


class SearchResponse(BaseModel):
    """Response model for an accepted search."""

    session_id: str | None
    status: str
    queries: list[str]
    platform: Platform


@router.post(
    "",
    response_model=SearchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_search(
    request: SearchRequest,
    console: Annotated[Console, Depends(get_console)],
) -> SearchResponse:
    """Submit the current queries to the scraping backend.

    Results stream into the console; poll ``/api/console`` or listen on
    ``/ws/console``.

    Raises:
        HTTPException: 400 if there are no queries.
        HTTPException: 409 if a search is already loading.
        HTTPException: 502 if the backend rejected the request.
    """
    try:
        accepted = await console.search(request.platform, request.limit)
    except QueryValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=e.message
        ) from e
    except SessionBusyError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=e.message
        ) from e

    controller = console.controller
    if not accepted:
        detail = (
            controller.last_error.message
            if controller.last_error
            else "Search was not accepted"
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=detail
        )

    return SearchResponse(
        session_id=controller.session_id,
        status=controller.status,
        queries=list(controller.queries),
        platform=console.platform,
    )
