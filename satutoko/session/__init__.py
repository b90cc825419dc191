"""Search sessions: submission, event streaming and result merging.

This package provides:
- ScrapeSessionController: the submit/stream/complete state machine
- merge_shop_result: in-place-by-key merging of per-shop reports
- Event types and the in-process event channel
- The scraping collaborator contract and an in-process adapter
"""

from satutoko.session.collaborator import (
    InProcessCollaborator,
    ScrapeCollaborator,
    ScrapeEngine,
    group_products_by_shop,
)
from satutoko.session.controller import (
    ScrapeSessionController,
    SessionPhase,
)
from satutoko.session.events import (
    DoneEvent,
    ErrorEvent,
    EventChannel,
    EventKind,
    ProgressEvent,
    SessionEvent,
    Subscription,
)
from satutoko.session.merger import merge_all, merge_shop_result

__all__ = [
    "DoneEvent",
    "ErrorEvent",
    "EventChannel",
    "EventKind",
    "InProcessCollaborator",
    "ProgressEvent",
    "ScrapeCollaborator",
    "ScrapeEngine",
    "ScrapeSessionController",
    "SessionEvent",
    "SessionPhase",
    "Subscription",
    "group_products_by_shop",
    "merge_all",
    "merge_shop_result",
]
