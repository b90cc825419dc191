"""Operator console state.

Console ties the query set, the session controller, the history store
and the expansion state together, and is the only thing the
presentation layer talks to. Everything it hands out is a snapshot;
changes go through its methods.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from satutoko.common.exceptions import (
    HistoryEntryNotFound,
    PersistenceFailure,
    QueryValidationError,
    SessionBusyError,
)
from satutoko.common.expansion import ExpansionState
from satutoko.common.query_set import QuerySet
from satutoko.config import ConsoleSettings, import_engine
from satutoko.data_types import (
    Platform,
    ShopResult,
    all_found,
    display_name,
    resolve_image,
    total_product_count,
)
from satutoko.history.models import HistoryEntry
from satutoko.history.storage import (
    KeyValueStorage,
    MemoryStorage,
    SQLiteStorage,
)
from satutoko.history.store import HistoryStore
from satutoko.session.collaborator import (
    InProcessCollaborator,
    ScrapeCollaborator,
    ScrapeEngine,
)
from satutoko.session.controller import ScrapeSessionController

logger = logging.getLogger(__name__)

MAX_NOTICES = 20


# =============================================================================
# Snapshot models
# =============================================================================


class ProductView(BaseModel):
    name: str
    price: str | None
    link: str
    image: str | None
    shop: str | None
    location: str | None


class QueryResultView(BaseModel):
    query: str
    products: list[ProductView]


class ShopView(BaseModel):
    shop_url: str
    shop_name: str
    platform: Platform
    all_found: bool
    product_count: int
    results: list[QueryResultView]


class HistoryItemView(BaseModel):
    id: int
    timestamp: str
    queries: list[str]
    platform: Platform
    result_count: int


class ConsoleSnapshot(BaseModel):
    """Everything the presentation layer renders."""

    queries: list[str]
    input: str
    platform: Platform
    status: str
    phase: str
    error: str | None
    result_count: int
    results: list[ShopView]
    expansion: dict[str, dict[str, bool]]
    history: list[HistoryItemView]
    notices: list[str]


def render_shop(shop: ShopResult) -> ShopView:
    """Build the view of one shop, resolving images and display names."""
    return ShopView(
        shop_url=shop.shop_url,
        shop_name=shop.shop_name or shop.shop_url,
        platform=shop.platform,
        all_found=all_found(shop),
        product_count=total_product_count([shop]),
        results=[
            QueryResultView(
                query=query_result.query,
                products=[
                    ProductView(
                        name=display_name(product),
                        price=product.price,
                        link=product.link,
                        image=resolve_image(product),
                        shop=product.shop,
                        location=product.location,
                    )
                    for product in query_result.products
                ],
            )
            for query_result in shop.results
        ],
    )


def history_item(entry: HistoryEntry) -> HistoryItemView:
    return HistoryItemView(
        id=entry.id,
        timestamp=entry.timestamp,
        queries=list(entry.queries),
        platform=entry.platform,
        result_count=entry.result_count,
    )


# =============================================================================
# Console
# =============================================================================


class Console:
    """State owner behind every presentation surface."""

    def __init__(
        self,
        collaborator: ScrapeCollaborator,
        history: HistoryStore,
        stream_timeout: float | None = None,
        default_limit: int = 20,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self.query_set = QuerySet()
        self.expansion = ExpansionState()
        self.platform = Platform.TOKOPEDIA
        self.history = history
        self.collaborator = collaborator
        self.notices: deque[str] = deque(maxlen=MAX_NOTICES)
        self._notify = notify
        self._listeners: list[Callable[[], None]] = []

        self.history.on_warning = self._on_persistence_warning
        self.controller = ScrapeSessionController(
            collaborator,
            history=history,
            notify=self.notify,
            stream_timeout=stream_timeout,
            default_limit=default_limit,
        )
        self.controller.add_listener(self._changed)

    def notify(self, message: str) -> None:
        """Show a message to the user."""
        self.notices.append(message)
        if self._notify is not None:
            self._notify(message)
        self._changed()

    def _on_persistence_warning(self, failure: PersistenceFailure) -> None:
        self.notify(f"History could not be saved: {failure.message}")

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` after every change; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.exception(f"Console listener failed: {e}")

    # -------------------------------------------------------------------------
    # Query editing
    # -------------------------------------------------------------------------

    def add_query(self, raw: str) -> bool:
        added = self.query_set.add(raw)
        self._changed()
        return added

    def remove_query(self, index: int) -> str:
        removed = self.query_set.remove(index)
        self._changed()
        return removed

    def set_input(self, text: str) -> None:
        self.query_set.buffer = text
        self._changed()

    def press_key(self, key: str) -> bool:
        handled = self.query_set.handle_key(key)
        if handled:
            self._changed()
        return handled

    def select_platform(self, platform: Platform | str) -> None:
        self.platform = Platform(platform)
        self._changed()

    # -------------------------------------------------------------------------
    # Searching
    # -------------------------------------------------------------------------

    async def search(
        self,
        platform: Platform | str | None = None,
        limit: int | None = None,
    ) -> bool:
        """Submit the current queries.

        Raises:
            QueryValidationError: If no queries were entered.
            SessionBusyError: If a search is already loading.
        """
        queries = self.query_set.submit()
        if not queries:
            raise QueryValidationError()
        if self.controller.loading:
            raise SessionBusyError("start a search")
        if platform is not None:
            self.platform = Platform(platform)

        self.expansion.reset()
        return await self.controller.submit(queries, self.platform, limit)

    # -------------------------------------------------------------------------
    # Expansion
    # -------------------------------------------------------------------------

    def toggle_shop(self, shop_index: int) -> bool:
        expanded = self.expansion.toggle_shop(shop_index)
        self._changed()
        return expanded

    def toggle_query(self, shop_index: int, query_index: int) -> bool:
        expanded = self.expansion.toggle_query(shop_index, query_index)
        self._changed()
        return expanded

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def get_history_entry(self, entry_id: int) -> HistoryEntry:
        entry = self.history.get(entry_id)
        if entry is None:
            raise HistoryEntryNotFound(entry_id)
        return entry

    def load_history(self, entry_id: int) -> HistoryEntry:
        """Replay a past session into the live view.

        Raises:
            HistoryEntryNotFound: If the id is unknown.
            SessionBusyError: If a search is loading.
        """
        entry = self.get_history_entry(entry_id)
        queries, platform, results = self.history.load(entry)
        self.controller.replay(queries, platform, results)
        self.query_set.replace(queries)
        self.platform = platform
        self.expansion.reset()
        logger.info(f"Loaded history entry {entry_id}")
        self._changed()
        return entry

    async def delete_history(self, entry_id: int) -> bool:
        removed = await self.history.delete(entry_id)
        self._changed()
        return removed

    async def clear_history(self) -> None:
        await self.history.clear()
        self._changed()

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def snapshot(self) -> ConsoleSnapshot:
        controller = self.controller
        return ConsoleSnapshot(
            queries=list(self.query_set.tags),
            input=self.query_set.buffer,
            platform=self.platform,
            status=controller.status,
            phase=controller.phase.value,
            error=controller.last_error.message
            if controller.last_error
            else None,
            result_count=total_product_count(controller.results),
            results=[render_shop(shop) for shop in controller.results],
            expansion=self.expansion.to_dict(),
            history=[history_item(entry) for entry in self.history.list()],
            notices=list(self.notices),
        )

    async def aclose(self) -> None:
        self.controller.close()
        aclose = getattr(self.collaborator, "aclose", None)
        if aclose is not None:
            await aclose()
        close_storage = getattr(self.history.storage, "close", None)
        if close_storage is not None:
            await close_storage()


async def build_console(
    settings: ConsoleSettings,
    engine: ScrapeEngine | None = None,
    storage: KeyValueStorage | None = None,
    **console_kwargs: Any,
) -> Console:
    """Create a console from settings and load its history.

    Args:
        settings: Console settings.
        engine: Scrape engine; imported from ``settings.engine`` if None.
        storage: History storage; derived from ``settings.db_path`` if None.
        **console_kwargs: Extra arguments for Console.
    """
    if engine is None and settings.engine:
        engine = import_engine(settings.engine)
    if storage is None:
        if settings.db_path is None:
            storage = MemoryStorage()
        else:
            storage = SQLiteStorage(settings.db_path)

    history = HistoryStore(
        storage,
        key=settings.history_key,
        capacity=settings.history_capacity,
    )
    await history.initialize()

    return Console(
        InProcessCollaborator(engine),
        history,
        stream_timeout=settings.stream_timeout,
        default_limit=settings.default_limit,
        **console_kwargs,
    )
