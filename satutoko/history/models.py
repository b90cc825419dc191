"""Models for persisted session history.

Tables:
- key_value: Durable key/value blobs (the history log lives under one key)

HistoryEntry is the pydantic model serialized into that blob.
"""

from __future__ import annotations

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Field as SQLField
from sqlmodel import SQLModel

from satutoko.data_types import Platform, ShopResult


class KeyValueItem(SQLModel, table=True):  # type: ignore[call-arg]
    """One serialized blob stored under a unique key."""

    __tablename__ = "key_value"

    key: str = SQLField(primary_key=True)
    value: str = SQLField(sa_column=sa.Column(sa.Text, nullable=False))
    updated_at: str = SQLField(default="")


class HistoryEntry(BaseModel):
    """Snapshot of one completed session. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Monotonically increasing id")
    timestamp: str = Field(..., description="ISO-8601 creation time")
    queries: tuple[str, ...] = Field(..., description="Submitted queries")
    platform: Platform
    result_count: int = Field(..., description="Total products in results")
    results: tuple[ShopResult, ...] = Field(default_factory=tuple)
