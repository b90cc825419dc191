"""Lifecycle of one search session.

Phases::

    idle -> submitting -> streaming -> completed -> idle
               |              |
               +--> failed <--+-> idle

``submit`` installs fresh event subscriptions (after releasing the
previous session's), clears the live result set and sends the request
to the scraping collaborator. Progress events are merged into the live
result set as they arrive. The done event snapshots the session into
history. A rejected request, an error event, or the streaming timeout
fails the session: the user is notified and whatever was merged so far
is kept.

Events are fenced twice: subscriptions from an earlier session are
cancelled before new ones are installed, and every event whose
``session_id`` is not the current session's is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from enum import Enum

from satutoko.common.exceptions import (
    ConsoleException,
    RequestFailure,
    SessionBusyError,
    SubscriptionFailure,
)
from satutoko.data_types import Platform, ShopResult
from satutoko.history.models import HistoryEntry
from satutoko.history.store import HistoryStore
from satutoko.session.collaborator import ScrapeCollaborator
from satutoko.session.events import (
    DoneEvent,
    ErrorEvent,
    EventKind,
    ProgressEvent,
    SessionEvent,
    Subscription,
)
from satutoko.session.merger import merge_shop_result

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


class SessionPhase(str, Enum):
    """Phases of the session state machine."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_PHASES = frozenset({SessionPhase.SUBMITTING, SessionPhase.STREAMING})


def _log_notification(message: str) -> None:
    logger.warning(message)


class ScrapeSessionController:
    """Owns the live result set and the subscriptions of the current session.

    Attributes:
        phase: Current SessionPhase.
        results: Live result set. Replaced, never mutated in place.
        queries: Queries of the current (or last) session.
        platform: Platform of the current (or last) session.
        session_id: Id of the session whose events are accepted.
        last_error: Failure of the last session, cleared on submit.
        last_entry: History entry recorded for the last completed session.
    """

    def __init__(
        self,
        collaborator: ScrapeCollaborator,
        history: HistoryStore | None = None,
        notify: Callable[[str], None] | None = None,
        stream_timeout: float | None = None,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        """Initialize the controller.

        Args:
            collaborator: Scraping backend to submit requests to.
            history: Store that receives a snapshot of completed sessions.
            notify: Synchronous user notification for session failures.
                Defaults to logging a warning.
            stream_timeout: Seconds to wait for the done event after the
                request was accepted. None or 0 waits forever.
            default_limit: Products per query when submit() gets no limit.
        """
        self.collaborator = collaborator
        self.history = history
        self.notify = notify or _log_notification
        self.stream_timeout = stream_timeout or None
        self.default_limit = default_limit

        self.phase = SessionPhase.IDLE
        self.results: list[ShopResult] = []
        self.queries: tuple[str, ...] = ()
        self.platform: Platform | None = None
        self.session_id: str | None = None
        self.last_error: ConsoleException | None = None
        self.last_entry: HistoryEntry | None = None

        self._subscriptions: list[Subscription] = []
        self._watchdog: asyncio.Task[None] | None = None
        self._listeners: list[Callable[[], None]] = []

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def loading(self) -> bool:
        return self.phase in ACTIVE_PHASES

    @property
    def status(self) -> str:
        """Presentation status: ``loading``, ``failed`` or ``idle``."""
        if self.loading:
            return "loading"
        if self.last_error is not None:
            return "failed"
        return "idle"

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` after every state or result change.

        Returns:
            A function that removes the listener.
        """
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
                logger.exception(f"Session listener failed: {e}")

    def _transition(self, phase: SessionPhase) -> None:
        logger.debug(
            f"Session {self.session_id}: {self.phase.value} -> {phase.value}"
        )
        self.phase = phase
        self._changed()

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(
        self,
        queries: Sequence[str],
        platform: Platform | str,
        limit: int | None = None,
    ) -> bool:
        """Start a new session.

        Callers must not submit while a session is loading; disable the
        trigger instead. An empty query set is ignored.

        Returns:
            True if the collaborator accepted the request.
        """
        queries = tuple(queries)
        if not queries:
            logger.debug("Ignoring submit without queries")
            return False
        platform = Platform(platform)

        self._release()
        session_id = uuid.uuid4().hex
        self.session_id = session_id
        self.queries = queries
        self.platform = platform
        self.results = []
        self.last_error = None
        self.last_entry = None
        self._transition(SessionPhase.SUBMITTING)
        logger.info(
            f"Submitting session {session_id}: {list(queries)} on "
            f"{platform.value}"
        )

        try:
            self._subscribe()
        except SubscriptionFailure as e:
            self._fail(e)
            return False

        try:
            await self.collaborator.submit_scrape(
                session_id,
                queries,
                platform,
                limit if limit is not None else self.default_limit,
            )
        except RequestFailure as e:
            if self.session_id == session_id:
                self._fail(e)
            return False
        except Exception as e:
            logger.exception(f"Collaborator error on submit: {e}")
            if self.session_id == session_id:
                self._fail(RequestFailure(str(e) or repr(e), session_id))
            return False

        # The session may have finished, failed or been superseded while
        # the request was in flight.
        if (
            self.session_id == session_id
            and self.phase is SessionPhase.SUBMITTING
        ):
            self._transition(SessionPhase.STREAMING)
            self._start_watchdog(session_id)
        return True

    def _subscribe(self) -> None:
        handlers = (
            (EventKind.PROGRESS, self._on_progress),
            (EventKind.DONE, self._on_done),
            (EventKind.ERROR, self._on_error),
        )
        for kind, handler in handlers:
            try:
                self._subscriptions.append(
                    self.collaborator.subscribe(kind, handler)
                )
            except Exception as e:
                self._release()
                raise SubscriptionFailure(kind.value, e) from e

    def _release(self) -> None:
        """Cancel every subscription and the watchdog of this controller."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        self._cancel_watchdog()

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _accepts(self, event: SessionEvent) -> bool:
        if event.session_id != self.session_id or not self.loading:
            logger.debug(
                f"Dropping stale '{event.kind.value}' event for session "
                f"{event.session_id}"
            )
            return False
        return True

    async def _on_progress(self, event: SessionEvent) -> None:
        if not isinstance(event, ProgressEvent) or not self._accepts(event):
            return
        self.results = merge_shop_result(self.results, event.shop)
        logger.debug(
            f"Merged shop {event.shop.shop_url}; {len(self.results)} shops"
        )
        self._changed()

    async def _on_done(self, event: SessionEvent) -> None:
        if not isinstance(event, DoneEvent) or not self._accepts(event):
            return
        session_id = event.session_id
        self._release()
        self._transition(SessionPhase.COMPLETED)
        logger.info(
            f"Session {session_id} completed with {len(self.results)} shops"
        )

        if self.history is not None and self.platform is not None:
            try:
                entry = await self.history.record(
                    self.queries, self.platform, self.results
                )
            except Exception as e:
                logger.exception(f"Could not record session {session_id}: {e}")
            else:
                if self.session_id == session_id:
                    self.last_entry = entry

        if self.session_id == session_id:
            self._transition(SessionPhase.IDLE)

    async def _on_error(self, event: SessionEvent) -> None:
        if not isinstance(event, ErrorEvent) or not self._accepts(event):
            return
        self._fail(RequestFailure(event.reason, event.session_id))

    def _fail(self, error: ConsoleException) -> None:
        self._release()
        self.last_error = error
        self._transition(SessionPhase.FAILED)
        logger.warning(
            f"Session {self.session_id} failed; keeping "
            f"{len(self.results)} merged shops"
        )
        self.notify(error.message)
        self._transition(SessionPhase.IDLE)

    # =========================================================================
    # Timeout
    # =========================================================================

    def _start_watchdog(self, session_id: str) -> None:
        if self.stream_timeout is None:
            return
        self._watchdog = asyncio.create_task(
            self._watch(session_id, self.stream_timeout)
        )

    async def _watch(self, session_id: str, timeout: float) -> None:
        await asyncio.sleep(timeout)
        if self.session_id == session_id and self.loading:
            self._fail(
                RequestFailure(
                    f"no completion within {timeout:g} seconds", session_id
                )
            )

    def _cancel_watchdog(self) -> None:
        watchdog, self._watchdog = self._watchdog, None
        if (
            watchdog is not None
            and not watchdog.done()
            and watchdog is not asyncio.current_task()
        ):
            watchdog.cancel()

    # =========================================================================
    # Replay and teardown
    # =========================================================================

    def replay(
        self,
        queries: Sequence[str],
        platform: Platform | str,
        results: Sequence[ShopResult],
    ) -> None:
        """Show a past session's results as the live result set.

        Raises:
            SessionBusyError: If a session is loading.
        """
        if self.loading:
            raise SessionBusyError("load a history entry")
        self._release()
        self.session_id = None
        self.queries = tuple(queries)
        self.platform = Platform(platform)
        self.results = list(results)
        self.last_error = None
        self.last_entry = None
        self._transition(SessionPhase.IDLE)

    def close(self) -> None:
        """Release subscriptions so late events are dropped."""
        self._release()
        self.session_id = None
        if self.phase is not SessionPhase.IDLE:
            self._transition(SessionPhase.IDLE)
