"""The set of product-name queries a search is submitted with.

Queries are unique by exact (trimmed) value and keep their insertion
order for display. The set also owns the text input buffer the user is
typing into, so the editing keys can be modelled here:

- Enter or ``,`` commits the buffer as a new query.
- Backspace on an empty buffer removes the last query.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

COMMIT_KEYS = frozenset({"Enter", ","})
BACKSPACE_KEY = "Backspace"


class QuerySet:
    """Deduplicated, ordered collection of query tags."""

    def __init__(self, queries: list[str] | None = None) -> None:
        self._tags: list[str] = []
        self.buffer = ""
        for query in queries or []:
            self.add(query)

    def __len__(self) -> int:
        return len(self._tags)

    def __iter__(self):
        return iter(self._tags)

    def __contains__(self, value: object) -> bool:
        return value in self._tags

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._tags)

    def add(self, raw: str) -> bool:
        """Add a query, ignoring blanks and duplicates.

        Clears the input buffer unless the trimmed value is empty.

        Returns:
            True if a new tag was inserted.
        """
        value = raw.strip()
        if not value:
            return False

        self.buffer = ""
        if value in self._tags:
            logger.debug(f"Query '{value}' already present")
            return False
        self._tags.append(value)
        return True

    def remove(self, index: int) -> str:
        """Remove and return the tag at ``index``.

        Raises:
            IndexError: If ``index`` is out of range.
        """
        if not 0 <= index < len(self._tags):
            raise IndexError(f"No query at index {index}")
        return self._tags.pop(index)

    def replace(self, queries: list[str]) -> None:
        """Replace every tag, e.g. when a past session is loaded."""
        self._tags = []
        self.buffer = ""
        for query in queries:
            self.add(query)

    def submit(self) -> tuple[str, ...]:
        """Return a frozen snapshot of the current tags.

        Callers must not submit an empty set; see
        :class:`~satutoko.common.exceptions.QueryValidationError`.
        """
        return tuple(self._tags)

    def handle_key(self, key: str) -> bool:
        """Apply an editing keystroke to the buffer and tags.

        Returns:
            True if the key was consumed.
        """
        if key in COMMIT_KEYS:
            self.add(self.buffer)
            return True
        if key == BACKSPACE_KEY and self.buffer == "" and self._tags:
            self._tags.pop()
            return True
        return False
