"""Shared fixtures for console tests."""

import pytest

from satutoko.data_types import ShopResult
from satutoko.history.storage import MemoryStorage
from satutoko.history.store import HistoryStore
from satutoko.session.controller import ScrapeSessionController
from tests.utils import FIXED_NOW, FakeCollaborator, make_shop


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
async def history(storage: MemoryStorage) -> HistoryStore:
    """An initialized history store with a frozen clock.

    With the clock frozen every id collides, so ids are produced by the
    monotonic bump alone.
    """
    store = HistoryStore(storage, clock=lambda: FIXED_NOW)
    await store.initialize()
    return store


@pytest.fixture
def collaborator() -> FakeCollaborator:
    return FakeCollaborator()


@pytest.fixture
def notifications() -> list[str]:
    """Messages shown to the user by the controller under test."""
    return []


@pytest.fixture
def controller(
    collaborator: FakeCollaborator,
    history: HistoryStore,
    notifications: list[str],
) -> ScrapeSessionController:
    return ScrapeSessionController(
        collaborator,
        history=history,
        notify=notifications.append,
    )


@pytest.fixture
def shop_a() -> ShopResult:
    """Shop with two products for 'sepatu'."""
    return make_shop("toko-a", {"sepatu": 2})


@pytest.fixture
def shop_b() -> ShopResult:
    """Shop searched for 'sepatu' without any match."""
    return make_shop("toko-b", {"sepatu": 0})
