"""
Conversion of CMS documents into store records.

Accepts both the camelCase projection returned by the content API and the
snake_case keys used by the local stores export. Broken references load as
``None`` so a partial record never prevents the rest of a collection from
loading.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable

from bs4 import BeautifulSoup

from thriftmap.models import BlogPost, Category, City, Coordinate, Neighborhood, Region, Store, StoreMetrics

logger = logging.getLogger(__name__)


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def store_from_document(doc: dict[str, Any]) -> Store | None:
    store_id = _text(_first(doc, "_id", "id"))
    name = _text(doc.get("name"))
    if not store_id or not name:
        return None

    location = doc.get("location") or {}
    hours = doc.get("hours") or {}

    return Store(
        id=store_id,
        name=name,
        slug=_slug(doc.get("slug")) or slugify(name),
        card_description=_text(_first(doc, "cardDescription", "card_description")) or None,
        description=description_text(doc.get("description")) or None,
        editorial_summary=_text(_first(doc, "editorialSummary", "editorial_summary")) or None,
        lat=_float(location.get("lat")) if isinstance(location, dict) else None,
        lng=_float(location.get("lng")) if isinstance(location, dict) else None,
        formatted_address=_text(_first(doc, "formattedAddress", "formatted_address")) or None,
        place_id=_text(_first(doc, "placeId", "place_id")) or None,
        hours=_weekday_text(hours),
        primary_category=category_from_document(_first(doc, "primaryCategory", "primary_category")),
        secondary_categories=[
            category
            for category in (
                category_from_document(item)
                for item in (_first(doc, "secondaryCategories", "secondary_categories") or [])
            )
            if category is not None
        ],
        neighborhood=neighborhood_from_document(doc.get("neighborhood")),
        metrics=_metrics(doc.get("metrics")),
        website=_text(doc.get("website")) or None,
        google_maps_url=_text(_first(doc, "googleMapsUrl", "google_maps_url")) or None,
    )


def stores_from_documents(docs: Iterable[Any]) -> list[Store]:
    stores: list[Store] = []
    for doc in docs:
        store = store_from_document(doc) if isinstance(doc, dict) else None
        if store is None:
            logger.warning(f"Skipping malformed store document: {_describe(doc)}")
            continue
        stores.append(store)
    return stores


def category_from_document(doc: Any) -> Category | None:
    if not isinstance(doc, dict):
        return None
    name = _text(doc.get("name"))
    if not name:
        return None
    slug = _slug(doc.get("slug")) or slugify(name)
    return Category(
        id=_text(_first(doc, "_id", "id")) or slug,
        name=name,
        slug=slug,
        description=_text(doc.get("description")) or None,
    )


def neighborhood_from_document(doc: Any) -> Neighborhood | None:
    if not isinstance(doc, dict):
        return None
    name = _text(doc.get("name"))
    if not name:
        return None
    slug = _slug(doc.get("slug")) or slugify(name)
    return Neighborhood(
        id=_text(_first(doc, "_id", "id")) or slug,
        name=name,
        slug=slug,
        region=region_from_document(doc.get("region")),
    )


def region_from_document(doc: Any) -> Region | None:
    if not isinstance(doc, dict):
        return None
    name = _text(doc.get("name"))
    if not name:
        return None
    slug = _slug(doc.get("slug")) or slugify(name)
    return Region(
        id=_text(_first(doc, "_id", "id")) or slug,
        name=name,
        slug=slug,
        city=city_from_document(doc.get("city")),
    )


def city_from_document(doc: Any) -> City | None:
    if not isinstance(doc, dict):
        return None
    name = _text(doc.get("name"))
    if not name:
        return None
    slug = _slug(doc.get("slug")) or slugify(name)
    center = doc.get("center") or {}
    lat = _float(center.get("lat")) if isinstance(center, dict) else None
    lng = _float(center.get("lng")) if isinstance(center, dict) else None
    zoom = _float(_first(doc, "defaultZoom", "default_zoom"))
    return City(
        id=_text(_first(doc, "_id", "id")) or slug,
        name=name,
        slug=slug,
        state=_text(doc.get("state")) or None,
        center=Coordinate(lat=lat, lng=lng) if lat is not None and lng is not None else None,
        default_zoom=int(zoom) if zoom is not None else None,
    )


def blog_post_from_document(doc: Any) -> BlogPost | None:
    if not isinstance(doc, dict):
        return None
    title = _text(doc.get("title"))
    if not title:
        return None
    slug = _slug(doc.get("slug")) or slugify(title)
    categories = [category_from_document(item) for item in doc.get("categories") or []]
    featured = doc.get("featuredStores") or doc.get("featured_stores") or []
    return BlogPost(
        id=_text(_first(doc, "_id", "id")) or slug,
        title=title,
        slug=slug,
        published_at=_text(_first(doc, "publishedAt", "published_at")),
        excerpt=_text(doc.get("excerpt")),
        author=_text(doc.get("author")) or None,
        category_slugs=[category.slug for category in categories if category is not None],
        featured_store_slugs=[
            _slug(item.get("slug")) for item in featured if isinstance(item, dict) and _slug(item.get("slug"))
        ],
    )


def description_text(value: Any) -> str:
    """Reduce an HTML string or a list of portable-text blocks to plain text."""
    if value is None:
        return ""
    if isinstance(value, str):
        if "<" not in value:
            return value.strip()
        soup = BeautifulSoup(value, "lxml")
        blocks = soup.find_all(["p", "h1", "h2", "h3", "h4", "li"])
        paragraphs = [_text(block.get_text()) for block in blocks] if blocks else [_text(soup.get_text())]
        return "\n\n".join(paragraph for paragraph in paragraphs if paragraph)
    if isinstance(value, list):
        paragraphs: list[str] = []
        for block in value:
            if not isinstance(block, dict):
                continue
            spans = block.get("children") or []
            text = "".join(str(span.get("text", "")) for span in spans if isinstance(span, dict)).strip()
            if text:
                paragraphs.append(text)
        return "\n\n".join(paragraphs)
    return ""


def _metrics(doc: Any) -> StoreMetrics | None:
    if not isinstance(doc, dict):
        return None
    rating = _float(doc.get("rating"))
    reviews = _float(_first(doc, "userRatingsTotal", "user_ratings_total", "reviewCount"))
    price = _float(_first(doc, "priceLevel", "price_level"))
    if rating is None and reviews is None and price is None:
        return None
    return StoreMetrics(
        rating=rating,
        review_count=int(reviews) if reviews is not None else None,
        price_level=int(price) if price is not None else None,
    )


def _weekday_text(hours: Any) -> list[str]:
    if not isinstance(hours, dict):
        return []
    lines = _first(hours, "weekdayText", "weekday_text") or []
    return [str(line) for line in lines if str(line).strip()]


def _first(doc: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = doc.get(key)
        if value is not None:
            return value
    return None


def _slug(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("current")
    return _text(value)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _describe(doc: Any) -> str:
    if isinstance(doc, dict):
        return str(doc.get("_id") or doc.get("id") or doc.get("name") or "<unnamed>")
    return type(doc).__name__
