"""REST API endpoints for toggling expanded shop and query groups."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from satutoko.console import Console
from satutoko.web.app import get_console

router = APIRouter(prefix="/api/expansion", tags=["expansion"])


class ToggleResponse(BaseModel):
    key: str
    expanded: bool


@router.get("")
async def get_expansion(
    console: Annotated[Console, Depends(get_console)],
) -> dict[str, dict[str, bool]]:
    return console.expansion.to_dict()


@router.post("/shops/{shop_index}/toggle", response_model=ToggleResponse)
async def toggle_shop(
    shop_index: int,
    console: Annotated[Console, Depends(get_console)],
) -> ToggleResponse:
    expanded = console.toggle_shop(shop_index)
    return ToggleResponse(key=str(shop_index), expanded=expanded)


@router.post(
    "/shops/{shop_index}/queries/{query_index}/toggle",
    response_model=ToggleResponse,
)
async def toggle_query(
    shop_index: int,
    query_index: int,
    console: Annotated[Console, Depends(get_console)],
) -> ToggleResponse:
    expanded = console.toggle_query(shop_index, query_index)
    return ToggleResponse(
        key=f"{shop_index}:{query_index}", expanded=expanded
    )
