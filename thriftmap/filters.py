from __future__ import annotations

from dataclasses import dataclass
import math
import re
from typing import Iterable, Mapping
import unicodedata

from thriftmap.geo import DEFAULT_CITY_CENTER, distance_miles
from thriftmap.models import Coordinate, FilterSpec, SortKey, Store

LIST_PARAMS = ("category", "neighborhood", "region")


@dataclass(frozen=True, slots=True)
class FilterResult:
    stores: tuple[Store, ...]
    total_count: int
    has_active_filters: bool

    @property
    def filtered_count(self) -> int:
        return len(self.stores)

    @property
    def has_data(self) -> bool:
        return self.total_count > 0

    @property
    def store_ids(self) -> list[str]:
        return [store.id for store in self.stores]


def apply_filters(
    stores: Iterable[Store],
    spec: FilterSpec,
    reference: Coordinate = DEFAULT_CITY_CENTER,
) -> FilterResult:
    all_stores = list(stores)
    visible = all_stores

    if spec.has_structural_filters:
        visible = [store for store in visible if _matches_structure(store, spec)]

    query = spec.query.strip().casefold()
    if query:
        visible = [store for store in visible if _matches_query(store, query)]

    return FilterResult(
        stores=tuple(sort_stores(visible, spec.sort, reference)),
        total_count=len(all_stores),
        has_active_filters=spec.has_active_filters,
    )


def sort_stores(stores: list[Store], sort: SortKey, reference: Coordinate = DEFAULT_CITY_CENTER) -> list[Store]:
    if sort == SortKey.RATING:
        return sorted(stores, key=_rating_key)
    if sort == SortKey.DISTANCE:
        return sorted(stores, key=lambda store: _distance_key(store, reference))
    return sorted(stores, key=_name_key)


def store_distance(store: Store, reference: Coordinate = DEFAULT_CITY_CENTER) -> float | None:
    coordinate = store.coordinate
    if coordinate is None:
        return None
    return distance_miles(reference, coordinate)


def _matches_structure(store: Store, spec: FilterSpec) -> bool:
    if spec.store_ids and store.id not in spec.store_ids:
        return False

    if spec.categories:
        if not any(slug in spec.categories for slug in store.category_slugs()):
            return False

    if spec.neighborhoods:
        if store.neighborhood is None or store.neighborhood.slug not in spec.neighborhoods:
            return False

    if spec.regions:
        region = store.region
        if region is None or region.slug not in spec.regions:
            return False

    return True


def _matches_query(store: Store, query: str) -> bool:
    fields = [store.name, store.card_description]
    if store.neighborhood is not None:
        fields.append(store.neighborhood.name)
    return any(query in value.casefold() for value in fields if value)


def _fold(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    stripped = "".join(char for char in normalized if not unicodedata.combining(char))
    return re.sub(r"\s{2,}", " ", stripped).casefold().strip()


def _name_key(store: Store) -> tuple[str, str, str]:
    return (_fold(store.name), store.name.casefold(), store.name)


def _rating_key(store: Store) -> tuple[float, int]:
    metrics = store.metrics
    rating = (metrics.rating if metrics else None) or 0.0
    reviews = (metrics.review_count if metrics else None) or 0
    return (-rating, -reviews)


def _distance_key(store: Store, reference: Coordinate) -> tuple[int, float]:
    # Stores without coordinates go last, keeping their input order.
    distance = store_distance(store, reference)
    if distance is None or math.isnan(distance):
        return (1, 0.0)
    return (0, distance)


def filter_spec_from_params(params: Mapping[str, str]) -> FilterSpec:
    sort_value = (params.get("sort") or "").strip().lower()
    try:
        sort = SortKey(sort_value)
    except ValueError:
        sort = SortKey.ALPHABETICAL

    return FilterSpec(
        categories=_split_list(params.get("category")),
        neighborhoods=_split_list(params.get("neighborhood")),
        regions=_split_list(params.get("region")),
        store_ids=_split_list(params.get("stores")),
        query=(params.get("q") or "").strip(),
        sort=sort,
    )


def filter_spec_to_params(spec: FilterSpec, include_search: bool = False) -> dict[str, str]:
    params: dict[str, str] = {}
    for name, values in zip(LIST_PARAMS, (spec.categories, spec.neighborhoods, spec.regions)):
        if values:
            params[name] = ",".join(values)
    if include_search:
        if spec.store_ids:
            params["stores"] = ",".join(spec.store_ids)
        if spec.query.strip():
            params["q"] = spec.query.strip()
        if spec.sort != SortKey.ALPHABETICAL:
            params["sort"] = spec.sort.value
    return params


def _split_list(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    values: list[str] = []
    for part in raw.split(","):
        cleaned = part.strip()
        if cleaned and cleaned not in values:
            values.append(cleaned)
    return tuple(values)
