"""
Content repository clients.

Every public method degrades to an empty collection (or ``None`` for single
documents) when the backing store fails, so callers only ever see empty
results, never exceptions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
import threading
import time
from typing import Any, Callable, Protocol

import requests

from thriftmap.config import DEFAULT_CACHE_SECONDS, Settings
from thriftmap.documents import (
    blog_post_from_document,
    category_from_document,
    neighborhood_from_document,
    region_from_document,
    stores_from_documents,
)
from thriftmap.models import BlogPost, Category, Neighborhood, Region, Store

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = 2  # seconds, doubles each retry
REQUEST_TIMEOUT = 15

_CITY_PROJECTION = "{_id, name, slug, state, center, defaultZoom}"
_REGION_PROJECTION = f"{{_id, name, slug, city->{_CITY_PROJECTION}}}"
_NEIGHBORHOOD_PROJECTION = f"{{_id, name, slug, region->{_REGION_PROJECTION}}}"
_CATEGORY_PROJECTION = "{_id, name, slug, description}"
_STORE_PROJECTION = f"""{{
  _id,
  name,
  slug,
  cardDescription,
  description,
  editorialSummary,
  location,
  formattedAddress,
  placeId,
  hours,
  primaryCategory->{_CATEGORY_PROJECTION},
  secondaryCategories[]->{_CATEGORY_PROJECTION},
  neighborhood->{_NEIGHBORHOOD_PROJECTION},
  metrics,
  website,
  googleMapsUrl
}}"""
_BLOG_PROJECTION = """{
  _id,
  title,
  slug,
  author,
  publishedAt,
  excerpt,
  categories[]->{_id, name, slug},
  featuredStores[]->{_id, name, slug}
}"""

ALL_STORES_QUERY = f'*[_type == "store"] {_STORE_PROJECTION}'
STORES_BY_CITY_QUERY = (
    f'*[_type == "store" && neighborhood->region->city->slug.current == $citySlug] {_STORE_PROJECTION}'
)
STORE_BY_SLUG_QUERY = f'*[_type == "store" && slug.current == $slug][0] {_STORE_PROJECTION}'
ALL_CATEGORIES_QUERY = f'*[_type == "category"] {_CATEGORY_PROJECTION}'
ALL_NEIGHBORHOODS_QUERY = f'*[_type == "neighborhood"] {_NEIGHBORHOOD_PROJECTION}'
NEIGHBORHOODS_BY_CITY_QUERY = (
    f'*[_type == "neighborhood" && region->city->slug.current == $citySlug] {_NEIGHBORHOOD_PROJECTION}'
)
REGIONS_BY_CITY_QUERY = f'*[_type == "region" && city->slug.current == $citySlug] {_REGION_PROJECTION}'
ALL_BLOG_POSTS_QUERY = f'*[_type == "blogPost"] {_BLOG_PROJECTION}'
BLOG_POST_BY_SLUG_QUERY = f'*[_type == "blogPost" && slug.current == $slug][0] {_BLOG_PROJECTION}'


class ContentRepository(Protocol):
    def get_all_stores(self) -> list[Store]: ...

    def get_stores_by_city(self, city_slug: str) -> list[Store]: ...

    def get_store_by_slug(self, slug: str) -> Store | None: ...

    def get_all_categories(self) -> list[Category]: ...

    def get_all_neighborhoods(self) -> list[Neighborhood]: ...

    def get_neighborhoods_by_city(self, city_slug: str) -> list[Neighborhood]: ...

    def get_regions_by_city(self, city_slug: str) -> list[Region]: ...

    def get_all_blog_posts(self) -> list[BlogPost]: ...

    def get_blog_post_by_slug(self, slug: str) -> BlogPost | None: ...


class SanityContentRepository:
    def __init__(
        self,
        project_id: str,
        dataset: str,
        api_version: str = "2024-01-01",
        token: str | None = None,
        use_cdn: bool = False,
        max_retries: int = MAX_RETRIES,
        retry_backoff_seconds: float = RETRY_BACKOFF,
        timeout_seconds: float = REQUEST_TIMEOUT,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self.project_id = project_id
        self.dataset = dataset
        self.api_version = api_version
        self.token = token
        self.use_cdn = use_cdn
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.timeout_seconds = timeout_seconds
        self.sleeper = sleeper

    @property
    def query_url(self) -> str:
        host = "apicdn" if self.use_cdn else "api"
        return f"https://{self.project_id}.{host}.sanity.io/v{self.api_version}/data/query/{self.dataset}"

    def get_all_stores(self) -> list[Store]:
        result = self._query(ALL_STORES_QUERY)
        stores = stores_from_documents(result or [])
        logger.info(f"get_all_stores found {len(stores)} total stores")
        return stores

    def get_stores_by_city(self, city_slug: str) -> list[Store]:
        result = self._query(STORES_BY_CITY_QUERY, {"citySlug": city_slug})
        stores = stores_from_documents(result or [])
        logger.info(f"Found {len(stores)} stores for city {city_slug}")
        return stores

    def get_store_by_slug(self, slug: str) -> Store | None:
        result = self._query(STORE_BY_SLUG_QUERY, {"slug": slug})
        if not isinstance(result, dict):
            return None
        stores = stores_from_documents([result])
        return stores[0] if stores else None

    def get_all_categories(self) -> list[Category]:
        result = self._query(ALL_CATEGORIES_QUERY)
        return _sorted_by_name(_parse_each(result, category_from_document))

    def get_all_neighborhoods(self) -> list[Neighborhood]:
        result = self._query(ALL_NEIGHBORHOODS_QUERY)
        return _sorted_by_name(_parse_each(result, neighborhood_from_document))

    def get_neighborhoods_by_city(self, city_slug: str) -> list[Neighborhood]:
        result = self._query(NEIGHBORHOODS_BY_CITY_QUERY, {"citySlug": city_slug})
        return _sorted_by_name(_parse_each(result, neighborhood_from_document))

    def get_regions_by_city(self, city_slug: str) -> list[Region]:
        result = self._query(REGIONS_BY_CITY_QUERY, {"citySlug": city_slug})
        return _sorted_by_name(_parse_each(result, region_from_document))

    def get_all_blog_posts(self) -> list[BlogPost]:
        result = self._query(ALL_BLOG_POSTS_QUERY)
        return _newest_first(_parse_each(result, blog_post_from_document))

    def get_blog_post_by_slug(self, slug: str) -> BlogPost | None:
        result = self._query(BLOG_POST_BY_SLUG_QUERY, {"slug": slug})
        return blog_post_from_document(result)

    def _query(self, groq: str, params: dict[str, str] | None = None) -> Any:
        """Run a GROQ query and return its ``result``, or None on failure."""
        request_params = {"query": groq}
        for key, value in (params or {}).items():
            request_params[f"${key}"] = json.dumps(value)

        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        for attempt in range(self.max_retries):
            try:
                response = requests.get(
                    self.query_url, params=request_params, headers=headers, timeout=self.timeout_seconds
                )
                response.raise_for_status()
                payload = response.json()
                if not isinstance(payload, dict):
                    raise ValueError("Unexpected response payload")
                return payload.get("result")
            except (requests.RequestException, ValueError) as e:
                wait = self.retry_backoff_seconds * (2**attempt)
                logger.warning(f"Attempt {attempt + 1}/{self.max_retries} failed for content query: {e}")
                if attempt < self.max_retries - 1:
                    logger.info(f"Retrying in {wait}s...")
                    self.sleeper(wait)
        logger.error(f"All {self.max_retries} attempts failed for content query")
        return None


class LocalContentRepository:
    """Reads stores from a JSON export and derives the taxonomy from them.

    Export rows usually carry neighborhood and region names without a city
    reference; such stores count as part of whichever city is requested.
    """

    def __init__(self, export_file: Path, blog_file: Path | None = None) -> None:
        self.export_file = export_file
        self.blog_file = blog_file if blog_file is not None else export_file.with_name("blog-posts.json")

    def get_all_stores(self) -> list[Store]:
        return stores_from_documents(self._read(self.export_file))

    def get_stores_by_city(self, city_slug: str) -> list[Store]:
        return [store for store in self.get_all_stores() if _city_slug(store) in ("", city_slug)]

    def get_store_by_slug(self, slug: str) -> Store | None:
        return next((store for store in self.get_all_stores() if store.slug == slug), None)

    def get_all_categories(self) -> list[Category]:
        categories: dict[str, Category] = {}
        for store in self.get_all_stores():
            for category in [store.primary_category, *store.secondary_categories]:
                if category is not None:
                    categories.setdefault(category.id, category)
        return _sorted_by_name(list(categories.values()))

    def get_all_neighborhoods(self) -> list[Neighborhood]:
        return _unique_neighborhoods(self.get_all_stores())

    def get_neighborhoods_by_city(self, city_slug: str) -> list[Neighborhood]:
        return _unique_neighborhoods(self.get_stores_by_city(city_slug))

    def get_regions_by_city(self, city_slug: str) -> list[Region]:
        regions: dict[str, Region] = {}
        for neighborhood in self.get_neighborhoods_by_city(city_slug):
            if neighborhood.region is not None:
                regions.setdefault(neighborhood.region.id, neighborhood.region)
        return _sorted_by_name(list(regions.values()))

    def get_all_blog_posts(self) -> list[BlogPost]:
        if not self.blog_file.exists():
            return []
        return _newest_first(_parse_each(self._read(self.blog_file), blog_post_from_document))

    def get_blog_post_by_slug(self, slug: str) -> BlogPost | None:
        return next((post for post in self.get_all_blog_posts() if post.slug == slug), None)

    def _read(self, path: Path) -> list[Any]:
        if not path.exists():
            logger.error(f"Content export not found: {path}")
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error reading content export {path}: {e}")
            return []
        if not isinstance(payload, list):
            logger.error(f"Content export {path} is not a list of documents")
            return []
        return payload


class CachedContentRepository:
    """Serves repeated reads from memory for ``ttl_seconds``.

    Empty collections and missing documents are not kept, since they are also
    what a failed fetch degrades to. ``refresh`` drops everything.
    """

    def __init__(
        self,
        repository: ContentRepository,
        ttl_seconds: float = DEFAULT_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[tuple[str, tuple[str, ...]], tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get_all_stores(self) -> list[Store]:
        return self._cached("get_all_stores")

    def get_stores_by_city(self, city_slug: str) -> list[Store]:
        return self._cached("get_stores_by_city", city_slug)

    def get_store_by_slug(self, slug: str) -> Store | None:
        return self._cached("get_store_by_slug", slug)

    def get_all_categories(self) -> list[Category]:
        return self._cached("get_all_categories")

    def get_all_neighborhoods(self) -> list[Neighborhood]:
        return self._cached("get_all_neighborhoods")

    def get_neighborhoods_by_city(self, city_slug: str) -> list[Neighborhood]:
        return self._cached("get_neighborhoods_by_city", city_slug)

    def get_regions_by_city(self, city_slug: str) -> list[Region]:
        return self._cached("get_regions_by_city", city_slug)

    def get_all_blog_posts(self) -> list[BlogPost]:
        return self._cached("get_all_blog_posts")

    def get_blog_post_by_slug(self, slug: str) -> BlogPost | None:
        return self._cached("get_blog_post_by_slug", slug)

    def refresh(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.info(f"Dropped {dropped} cached content results")

    def _cached(self, method: str, *args: str) -> Any:
        key = (method, args)
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and now - entry[0] < self.ttl_seconds:
            return _copied(entry[1])

        value = getattr(self.repository, method)(*args)
        if value:
            with self._lock:
                self._entries[key] = (now, value)
        return _copied(value)


def build_repository(settings: Settings) -> SanityContentRepository | LocalContentRepository:
    if settings.uses_sanity:
        return SanityContentRepository(
            project_id=settings.sanity_project_id,
            dataset=settings.sanity_dataset,
            api_version=settings.sanity_api_version,
            token=settings.sanity_token,
        )
    logger.warning(f"Sanity is not configured, reading stores from {settings.data_file}")
    return LocalContentRepository(settings.data_file)


def _parse_each(result: Any, parse: Callable[[Any], Any]) -> list[Any]:
    if not isinstance(result, list):
        return []
    return [item for item in (parse(doc) for doc in result) if item is not None]


def _sorted_by_name(items: list[Any]) -> list[Any]:
    return sorted(items, key=lambda item: item.name.casefold())


def _newest_first(posts: list[BlogPost]) -> list[BlogPost]:
    return sorted(posts, key=lambda post: post.published_at, reverse=True)


def _copied(value: Any) -> Any:
    return list(value) if isinstance(value, list) else value


def _city_slug(store: Store) -> str:
    """Slug of the store's city, or "" when the reference chain stops short."""
    region = store.region
    if region is None or region.city is None:
        return ""
    return region.city.slug


def _unique_neighborhoods(stores: list[Store]) -> list[Neighborhood]:
    neighborhoods: dict[str, Neighborhood] = {}
    for store in stores:
        if store.neighborhood is not None:
            neighborhoods.setdefault(store.neighborhood.id, store.neighborhood)
    return _sorted_by_name(list(neighborhoods.values()))
