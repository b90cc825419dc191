"""Contract with the scraping backend, and an in-process adapter for it.

The console never scrapes anything itself. It submits ``(queries,
platform)`` to a collaborator and listens for progress/done/error events.
Any object implementing :class:`ScrapeCollaborator` can be plugged in.

:class:`InProcessCollaborator` adapts a *scrape engine* to that
contract. An engine is an async generator function::

    async def engine(queries, platform, limit):
        for shop in ...:
            yield ShopResult(...)

Each yielded shop (a ShopResult or an equivalent dict) becomes a
progress event; a shop that fails validation is logged and dropped.
Returning normally emits done; raising emits error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from satutoko.common.exceptions import RequestFailure
from satutoko.data_types import (
    Platform,
    Product,
    QueryResult,
    ShopResult,
    extract_shop_slug,
    normalize_link,
    shop_url_for,
)
from satutoko.session.events import (
    DoneEvent,
    ErrorEvent,
    EventCallback,
    EventChannel,
    EventKind,
    ProgressEvent,
    Subscription,
)

logger = logging.getLogger(__name__)

ScrapeEngine = Callable[
    [Sequence[str], Platform, int], AsyncIterator[ShopResult | dict[str, Any]]
]


class ScrapeCollaborator(Protocol):
    """What the session controller needs from the scraping backend."""

    def subscribe(
        self, kind: EventKind, callback: EventCallback
    ) -> Subscription: ...

    async def submit_scrape(
        self,
        session_id: str,
        queries: Sequence[str],
        platform: Platform,
        limit: int,
    ) -> None:
        """Return once the request is accepted.

        Raises:
            RequestFailure: If the backend rejects the request.
        """
        ...


class InProcessCollaborator:
    """Runs a scrape engine as an asyncio task and publishes its output."""

    def __init__(
        self,
        engine: ScrapeEngine | None = None,
        channel: EventChannel | None = None,
    ) -> None:
        self.engine = engine
        self.channel = channel or EventChannel()
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def subscribe(
        self, kind: EventKind, callback: EventCallback
    ) -> Subscription:
        return self.channel.subscribe(kind, callback)

    async def submit_scrape(
        self,
        session_id: str,
        queries: Sequence[str],
        platform: Platform,
        limit: int,
    ) -> None:
        if self.engine is None:
            raise RequestFailure(
                "no scrape engine is configured", session_id=session_id
            )
        if not queries:
            raise RequestFailure("no queries submitted", session_id=session_id)

        task = asyncio.create_task(
            self._run_engine(session_id, list(queries), platform, limit)
        )
        self._tasks[session_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(session_id, None))
        logger.info(
            f"Accepted session {session_id}: {len(queries)} queries on "
            f"{platform.value}"
        )

    async def _run_engine(
        self,
        session_id: str,
        queries: list[str],
        platform: Platform,
        limit: int,
    ) -> None:
        assert self.engine is not None
        try:
            async for payload in self.engine(queries, platform, limit):
                try:
                    shop = ShopResult.model_validate(payload)
                except ValidationError as e:
                    logger.warning(
                        f"Dropping invalid shop report for {session_id}: "
                        f"{e.error_count()} validation errors"
                    )
                    continue
                await self.channel.publish(
                    ProgressEvent(session_id=session_id, shop=shop)
                )
        except asyncio.CancelledError:
            logger.info(f"Session {session_id} engine cancelled")
            raise
        except Exception as e:
            logger.exception(f"Scrape engine failed for {session_id}: {e}")
            await self.channel.publish(
                ErrorEvent(session_id=session_id, reason=str(e) or repr(e))
            )
            return
        await self.channel.publish(DoneEvent(session_id=session_id))

    async def wait(self, session_id: str) -> None:
        """Wait for a session's engine task to finish, if it is running."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel every running engine task."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


def group_products_by_shop(
    query_results: Sequence[QueryResult], platform: Platform
) -> list[ShopResult]:
    """Regroup flat per-query product lists into per-shop results.

    Shops are discovered from product links and listed in first-seen
    order. Each shop gets one QueryResult per query, holding only that
    shop's products (possibly none). Products whose link does not reveal
    a shop are dropped.
    """
    shop_names: dict[str, str] = {}
    per_shop: dict[str, dict[str, list[Product]]] = {}

    for query_result in query_results:
        for product in query_result.products:
            link = normalize_link(product.link, platform)
            slug = extract_shop_slug(link, platform)
            if slug is None:
                logger.debug(f"Could not find shop in link '{link}'")
                continue
            if product.shop and slug not in shop_names:
                shop_names[slug] = product.shop
            buckets = per_shop.setdefault(slug, {})
            buckets.setdefault(query_result.query, []).append(
                product.model_copy(update={"link": link})
            )

    grouped: list[ShopResult] = []
    for slug, buckets in per_shop.items():
        grouped.append(
            ShopResult(
                shop_url=shop_url_for(slug, platform),
                shop_name=shop_names.get(slug, slug),
                platform=platform,
                results=[
                    QueryResult(
                        query=qr.query,
                        products=buckets.get(qr.query, []),
                    )
                    for qr in query_results
                ],
            )
        )
    return grouped
