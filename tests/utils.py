"""Test utilities for console tests.

This module provides builders for result models, a scriptable scraping
collaborator, failing storage backends and a couple of scrape engines.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from satutoko.common.exceptions import RequestFailure
from satutoko.data_types import (
    Platform,
    Product,
    QueryResult,
    ShopResult,
    shop_url_for,
)
from satutoko.session.events import (
    DoneEvent,
    ErrorEvent,
    EventCallback,
    EventChannel,
    EventKind,
    ProgressEvent,
    SessionEvent,
    Subscription,
)

logger = logging.getLogger(__name__)

# Fixed wall clock: 2023-11-14T22:13:20Z
FIXED_NOW = 1_700_000_000.0


# =============================================================================
# Model builders
# =============================================================================


def make_product(slug: str, name: str, **fields: Any) -> Product:
    """Build a Tokopedia product whose link points into shop ``slug``."""
    link = fields.pop("link", f"https://www.tokopedia.com/{slug}/{name}")
    return Product(link=link, name=name, **fields)


def make_shop(
    slug: str,
    products: dict[str, int] | None = None,
    platform: Platform = Platform.TOKOPEDIA,
) -> ShopResult:
    """Build a shop result.

    Args:
        slug: Shop identifier, also used as the display name.
        products: Mapping of query to number of products for it.
        platform: Marketplace of the shop.

    Example:
        make_shop("toko-a", {"sepatu": 2, "sandal": 0})
    """
    return ShopResult(
        shop_url=shop_url_for(slug, platform),
        shop_name=slug,
        platform=platform,
        results=[
            QueryResult(
                query=query,
                products=[
                    make_product(slug, f"{query}-{i}") for i in range(count)
                ],
            )
            for query, count in (products or {}).items()
        ],
    )


# =============================================================================
# Collaborators and engines
# =============================================================================


@dataclass
class Submission:
    session_id: str
    queries: tuple[str, ...]
    platform: Platform
    limit: int


class FakeCollaborator:
    """Scraping collaborator driven by the test.

    Requests are recorded instead of executed; the test publishes the
    backend's events itself with :meth:`progress`, :meth:`done` and
    :meth:`error`.

    Attributes:
        reject: Reason to reject every submission with, if set.
        raise_on_submit: Arbitrary exception raised from submit_scrape.
        fail_subscribe: Event kind whose subscription raises.
    """

    def __init__(self) -> None:
        self.channel = EventChannel()
        self.submissions: list[Submission] = []
        self.reject: str | None = None
        self.raise_on_submit: Exception | None = None
        self.fail_subscribe: EventKind | None = None
        self.during_submit: Callable[[str], Awaitable[None]] | None = None

    def subscribe(
        self, kind: EventKind, callback: EventCallback
    ) -> Subscription:
        if kind == self.fail_subscribe:
            raise RuntimeError(f"cannot listen for {kind.value}")
        return self.channel.subscribe(kind, callback)

    async def submit_scrape(
        self,
        session_id: str,
        queries: Sequence[str],
        platform: Platform,
        limit: int,
    ) -> None:
        self.submissions.append(
            Submission(session_id, tuple(queries), platform, limit)
        )
        if self.during_submit is not None:
            await self.during_submit(session_id)
        if self.raise_on_submit is not None:
            raise self.raise_on_submit
        if self.reject is not None:
            raise RequestFailure(self.reject, session_id=session_id)

    @property
    def last_session_id(self) -> str:
        return self.submissions[-1].session_id

    async def progress(self, shop: ShopResult, session_id: str = "") -> None:
        await self.channel.publish(
            ProgressEvent(
                session_id=session_id or self.last_session_id, shop=shop
            )
        )

    async def done(self, session_id: str = "") -> None:
        await self.channel.publish(
            DoneEvent(session_id=session_id or self.last_session_id)
        )

    async def error(self, reason: str, session_id: str = "") -> None:
        await self.channel.publish(
            ErrorEvent(
                session_id=session_id or self.last_session_id, reason=reason
            )
        )


async def sample_engine(
    queries: Sequence[str], platform: Platform, limit: int
) -> AsyncIterator[ShopResult]:
    """Engine that reports two shops, one product per query each."""
    for slug in ("toko-a", "toko-b"):
        yield make_shop(slug, {query: 1 for query in queries}, platform)


async def failing_engine(
    queries: Sequence[str], platform: Platform, limit: int
) -> AsyncIterator[ShopResult]:
    """Engine that reports one shop and then fails."""
    yield make_shop("toko-a", {query: 1 for query in queries}, platform)
    raise RuntimeError("marketplace unreachable")


async def blocking_engine(
    queries: Sequence[str], platform: Platform, limit: int
) -> AsyncIterator[ShopResult]:
    """Engine that never finishes until cancelled."""
    await asyncio.Event().wait()
    yield make_shop("never")


# =============================================================================
# Storage
# =============================================================================


class FailingStorage:
    """Storage whose operations raise on demand."""

    def __init__(
        self,
        fail_get: bool = False,
        fail_set: bool = False,
        fail_remove: bool = False,
    ) -> None:
        self.data: dict[str, str] = {}
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.fail_remove = fail_remove

    async def get(self, key: str) -> str | None:
        if self.fail_get:
            raise OSError("storage unavailable")
        return self.data.get(key)

    async def set(self, key: str, blob: str) -> None:
        if self.fail_set:
            raise OSError("quota exceeded")
        self.data[key] = blob

    async def remove(self, key: str) -> None:
        if self.fail_remove:
            raise OSError("storage unavailable")
        self.data.pop(key, None)


class GatedStorage:
    """Storage whose writes wait until ``release`` is set."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.writing = asyncio.Event()
        self.release = asyncio.Event()

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, blob: str) -> None:
        self.writing.set()
        await self.release.wait()
        self.data[key] = blob

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


# =============================================================================
# Collectors
# =============================================================================


def collect_events() -> tuple[
    Callable[[SessionEvent], Awaitable[None]], list[SessionEvent]
]:
    """Create an async subscriber that collects events in a list.

    Returns:
        A tuple of (async_callback_function, events_list).
    """
    events: list[SessionEvent] = []

    async def callback(event: SessionEvent) -> None:
        events.append(event)

    return callback, events
