"""Which shop and shop/query groups are expanded in the result view.

Keys are positions in the current result set, so the state is only
meaningful for the result set it was built against. It must be reset
whenever a different result set is loaded.
"""

from __future__ import annotations


def query_key(shop_index: int, query_index: int) -> str:
    """Key for a query group inside a shop."""
    return f"{shop_index}:{query_index}"


class ExpansionState:
    """Two sparse maps of expanded flags; missing keys are collapsed."""

    def __init__(self) -> None:
        self.shops: dict[int, bool] = {}
        self.queries: dict[str, bool] = {}

    def is_shop_expanded(self, shop_index: int) -> bool:
        return self.shops.get(shop_index, False)

    def is_query_expanded(self, shop_index: int, query_index: int) -> bool:
        return self.queries.get(query_key(shop_index, query_index), False)

    def toggle_shop(self, shop_index: int) -> bool:
        """Flip a shop's flag and return the new value."""
        self.shops[shop_index] = not self.shops.get(shop_index, False)
        return self.shops[shop_index]

    def toggle_query(self, shop_index: int, query_index: int) -> bool:
        """Flip a query group's flag and return the new value."""
        key = query_key(shop_index, query_index)
        self.queries[key] = not self.queries.get(key, False)
        return self.queries[key]

    def reset(self) -> None:
        self.shops = {}
        self.queries = {}

    def to_dict(self) -> dict[str, dict[str, bool]]:
        """Copy of both maps for presentation snapshots."""
        return {
            "shops": {str(k): v for k, v in self.shops.items()},
            "queries": dict(self.queries),
        }
