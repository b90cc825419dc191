"""Events emitted by the scraping backend during a session.

This module provides:
- The three event kinds a session can receive (progress, done, error)
- Subscription handles that can be cancelled individually
- An in-process channel that delivers events to subscribers

Every event is tagged with the id of the session it belongs to, so a
subscriber can drop reports that arrive late from an abandoned session.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

from satutoko.data_types import ShopResult

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Kinds of session events that can be subscribed to."""

    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressEvent(BaseModel):
    """One shop's results, possibly amending an earlier report."""

    kind: Literal[EventKind.PROGRESS] = EventKind.PROGRESS
    session_id: str
    shop: ShopResult
    timestamp: datetime = Field(default_factory=_now)


class DoneEvent(BaseModel):
    """Terminal event: the backend finished the session."""

    kind: Literal[EventKind.DONE] = EventKind.DONE
    session_id: str
    timestamp: datetime = Field(default_factory=_now)


class ErrorEvent(BaseModel):
    """Terminal event: the backend failed after accepting the request."""

    kind: Literal[EventKind.ERROR] = EventKind.ERROR
    session_id: str
    reason: str
    timestamp: datetime = Field(default_factory=_now)


SessionEvent = Union[ProgressEvent, DoneEvent, ErrorEvent]
EventCallback = Callable[[SessionEvent], Awaitable[None]]


class Subscription:
    """Handle for one registered callback.

    Cancelling is idempotent. Once cancelled, the callback is never
    invoked again, including for an event that is mid-delivery.
    """

    def __init__(
        self,
        channel: EventChannel,
        kind: EventKind,
        callback: EventCallback,
    ) -> None:
        self._channel = channel
        self.kind = kind
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._channel._remove(self)


class EventChannel:
    """In-process publish/subscribe hub for session events."""

    def __init__(self) -> None:
        self._subscriptions: dict[EventKind, list[Subscription]] = {
            kind: [] for kind in EventKind
        }

    def subscribe(
        self, kind: EventKind, callback: EventCallback
    ) -> Subscription:
        """Register ``callback`` for events of ``kind``."""
        subscription = Subscription(self, kind, callback)
        self._subscriptions[kind].append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions[subscription.kind]
        if subscription in subscribers:
            subscribers.remove(subscription)

    def subscriber_count(self, kind: EventKind | None = None) -> int:
        if kind is not None:
            return len(self._subscriptions[kind])
        return sum(len(subs) for subs in self._subscriptions.values())

    async def publish(self, event: SessionEvent) -> None:
        """Deliver an event to every active subscriber of its kind.

        Subscribers are awaited in subscription order. A subscriber that
        raises is logged and does not prevent delivery to the others.
        """
        for subscription in list(self._subscriptions[event.kind]):
            if not subscription.active:
                continue
            try:
                await subscription.callback(event)
            except Exception as e:
                logger.exception(
                    f"Subscriber for '{event.kind.value}' events failed: {e}"
                )
