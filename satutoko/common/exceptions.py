"""Exception types for the console core.

Session-level failures (RequestFailure, SubscriptionFailure) are shown to
the user. PersistenceFailure never escapes the history store: it is
logged and reported as a warning while the in-memory history stays
authoritative. QueryValidationError is raised at the boundary, before a
submission reaches the session controller.
"""

from typing import Any


class ConsoleException(Exception):
    """Base class for console errors.

    Carries a human-readable message and an optional dict of context
    that is appended to the formatted exception text.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            context: Optional dict of additional context (ids, keys, etc).
        """
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)


class QueryValidationError(ConsoleException):
    """Raised when a search is submitted with an empty query set."""

    def __init__(
        self, message: str = "At least one query is required"
    ) -> None:
        super().__init__(message)


class RequestFailure(ConsoleException):
    """The scraping backend rejected the request or failed mid-stream.

    Attributes:
        reason: The backend's reason string.
        session_id: Session the failure belongs to, when known.
    """

    def __init__(self, reason: str, session_id: str | None = None) -> None:
        self.reason = reason
        self.session_id = session_id
        context = {"session_id": session_id} if session_id else None
        super().__init__(f"Scrape request failed: {reason}", context)


class SubscriptionFailure(ConsoleException):
    """The progress/done event channel could not be established."""

    def __init__(self, event_kind: str, cause: Exception) -> None:
        self.event_kind = event_kind
        self.cause = cause
        super().__init__(
            f"Could not subscribe to '{event_kind}' events",
            {"error": f"{type(cause).__name__}: {cause}"},
        )


class PersistenceFailure(ConsoleException):
    """Reading or writing the persisted history failed."""

    def __init__(self, operation: str, key: str, cause: Exception) -> None:
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(
            f"History {operation} failed",
            {"key": key, "error": f"{type(cause).__name__}: {cause}"},
        )


class SessionBusyError(ConsoleException):
    """An operation that replaces the live results ran during a search."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} while a search is in progress"
        )


class HistoryEntryNotFound(ConsoleException):
    """No history entry exists with the requested id."""

    def __init__(self, entry_id: int) -> None:
        self.entry_id = entry_id
        super().__init__(f"History entry {entry_id} not found")
