"""Data types shared by the console, the session controller and history.

The scraping backend reports results grouped by shop: each ShopResult
carries one QueryResult per submitted query, and each QueryResult the
products matched in that shop. These models are validated with pydantic
when they arrive from the backend, so a malformed payload is rejected at
the boundary instead of leaking into the merged result set.

Image resolution and display-name fallback happen when a snapshot is
rendered, never when results are merged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    """Marketplaces a search can be submitted against."""

    TOKOPEDIA = "tokopedia"
    SHOPEE = "shopee"


PLATFORM_BASE_URLS: dict[Platform, str] = {
    Platform.TOKOPEDIA: "https://www.tokopedia.com",
    Platform.SHOPEE: "https://shopee.co.id",
}


class Product(BaseModel):
    """A single product listing.

    ``link`` is the only required field. Extra fields sent by the backend
    are kept on the model because some of them are image sources.
    """

    model_config = ConfigDict(extra="allow")

    link: str = Field(..., description="Absolute product URL")
    name: str | None = Field(None, description="Product title")
    price: str | None = Field(None, description="Price as displayed")
    image: str | None = Field(None, description="Preferred image URL")
    photo: str | None = Field(None, description="Image URL (legacy field)")
    shop: str | None = Field(None, description="Shop display name")
    location: str | None = Field(None, description="Shop location")


class QueryResult(BaseModel):
    """Products one shop returned for one query.

    An empty ``products`` list means the shop was searched and nothing
    matched, which is different from the query not being reported yet.
    """

    query: str
    products: list[Product] = Field(default_factory=list)


class ShopResult(BaseModel):
    """All query results reported for one shop, keyed by ``shop_url``."""

    shop_url: str
    shop_name: str = ""
    platform: Platform
    results: list[QueryResult] = Field(default_factory=list)


# =============================================================================
# Derived values
# =============================================================================


def total_product_count(results: Iterable[ShopResult]) -> int:
    """Sum the product counts over every shop and query."""
    return sum(
        len(query_result.products)
        for shop in results
        for query_result in shop.results
    )


def all_found(shop: ShopResult) -> bool:
    """True when every query reported for the shop matched something.

    A shop with no query results at all is not considered complete.
    """
    return bool(shop.results) and all(
        query_result.products for query_result in shop.results
    )


def _extra(field_name: str) -> Callable[[Product], Any]:
    def accessor(product: Product) -> Any:
        return (product.model_extra or {}).get(field_name)

    return accessor


# Evaluated in order; the first non-empty string wins.
IMAGE_ACCESSORS: tuple[Callable[[Product], Any], ...] = (
    lambda product: product.image,
    lambda product: product.photo,
    _extra("image_url"),
    _extra("thumbnail"),
    _extra("img"),
)


def resolve_image(product: Product) -> str | None:
    """Return the first usable image URL for a product, if any."""
    for accessor in IMAGE_ACCESSORS:
        value = accessor(product)
        if isinstance(value, str) and value.strip():
            return value
    return None


def display_name(product: Product) -> str:
    """Product title, falling back to its link."""
    return product.name or product.link


# =============================================================================
# Link helpers
# =============================================================================


def normalize_link(link: str, platform: Platform) -> str:
    """Make scheme-relative and root-relative product links absolute."""
    if link.startswith("//"):
        return f"https:{link}"
    if link.startswith("/"):
        return f"{PLATFORM_BASE_URLS[platform]}{link}"
    return link


def extract_shop_slug(link: str, platform: Platform) -> str | None:
    """Extract the shop identifier from a product link.

    Tokopedia product URLs look like
    ``https://www.tokopedia.com/<shop>/<product>``. Shopee links do not
    expose the shop in a stable way, so every Shopee product is filed
    under a single ``shopee`` slug.
    """
    if platform is Platform.SHOPEE:
        return "shopee"

    prefix = f"{PLATFORM_BASE_URLS[Platform.TOKOPEDIA]}/"
    if not link.startswith(prefix):
        return None
    slug, sep, _rest = link[len(prefix) :].partition("/")
    if not sep or not slug:
        return None
    return slug


def shop_url_for(slug: str, platform: Platform) -> str:
    """Build the storefront URL for a shop slug."""
    return f"{PLATFORM_BASE_URLS[platform]}/{slug}"
