"""Fold per-shop progress reports into one ordered result set.

Shops appear in the order they were first reported. A later report for
a shop that is already present replaces it at the same position, so a
repeated or amended report never duplicates or reorders entries. Reports
carry no sequence numbers: the last one to arrive wins.
"""

from __future__ import annotations

from collections.abc import Sequence

from satutoko.data_types import ShopResult


def merge_shop_result(
    current: Sequence[ShopResult], incoming: ShopResult
) -> list[ShopResult]:
    """Return a new result set with ``incoming`` merged in.

    ``current`` is not modified.
    """
    merged = list(current)
    for index, shop in enumerate(merged):
        if shop.shop_url == incoming.shop_url:
            merged[index] = incoming
            return merged
    merged.append(incoming)
    return merged


def merge_all(
    current: Sequence[ShopResult], incoming: Sequence[ShopResult]
) -> list[ShopResult]:
    """Merge a batch of reports in arrival order."""
    merged = list(current)
    for shop in incoming:
        merged = merge_shop_result(merged, shop)
    return merged
