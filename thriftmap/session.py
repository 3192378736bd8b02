from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
import logging
from typing import Mapping

from thriftmap.autocomplete import build_index, match_options, option_source_id
from thriftmap.category_utils import CATEGORY_STYLES, CategoryStyle, category_style, classify_store
from thriftmap.filters import FilterResult, apply_filters, filter_spec_from_params, filter_spec_to_params, store_distance
from thriftmap.geo import DEFAULT_CITY_CENTER
from thriftmap.markers import MapView, MarkerSynchronizer
from thriftmap.models import (
    AutocompleteOption,
    Category,
    Coordinate,
    FilterSpec,
    Neighborhood,
    OptionKind,
    Region,
    SortKey,
    Store,
)
from thriftmap.repository import ContentRepository

logger = logging.getLogger(__name__)

CATEGORIES_TAB = "categories"
REGIONS_TAB = "regions"


@dataclass(frozen=True, slots=True)
class StoreRow:
    store: Store
    distance_miles: float | None
    store_type: str
    style: CategoryStyle
    price_indicator: str
    is_selected: bool
    is_hovered: bool


class DiscoverySession:
    """Owns the discovery state for one map view and keeps the map in sync.

    Every mutator recomputes the visible subset explicitly and hands it to the
    marker synchronizer.
    """

    def __init__(
        self,
        repository: ContentRepository,
        map_view: MapView,
        city_slug: str = "new-york",
        reference: Coordinate = DEFAULT_CITY_CENTER,
    ) -> None:
        self.repository = repository
        self.city_slug = city_slug
        self.reference = reference
        self.stores: list[Store] = []
        self.categories: list[Category] = []
        self.neighborhoods: list[Neighborhood] = []
        self.regions: list[Region] = []
        self.spec = FilterSpec()
        self.result = apply_filters([], self.spec, reference)
        self.options: list[AutocompleteOption] = []
        self.selected_store: Store | None = None
        self.hovered_store_id: str | None = None
        self.detail_open = False
        self.active_tab = CATEGORIES_TAB
        self.loading = False
        self.closed = False
        self.markers = MarkerSynchronizer(
            map_view,
            on_store_select=self.select_store,
            on_store_hover=self._marker_hover,
        )

    async def load(self) -> None:
        self.loading = True
        try:
            stores, categories, neighborhoods, regions = await asyncio.gather(
                asyncio.to_thread(self.repository.get_stores_by_city, self.city_slug),
                asyncio.to_thread(self.repository.get_all_categories),
                asyncio.to_thread(self.repository.get_neighborhoods_by_city, self.city_slug),
                asyncio.to_thread(self.repository.get_regions_by_city, self.city_slug),
            )
        except Exception as error:
            logger.error(f"Error loading discovery data: {error}")
            stores, categories, neighborhoods, regions = [], [], [], []
        finally:
            self.loading = False

        if self.closed:
            logger.info("Discarding discovery data loaded after the session closed")
            return
        self.set_collections(stores, categories, neighborhoods, regions)

    def set_collections(
        self,
        stores: list[Store],
        categories: list[Category],
        neighborhoods: list[Neighborhood],
        regions: list[Region],
    ) -> None:
        self.stores = list(stores)
        self.categories = list(categories)
        self.neighborhoods = list(neighborhoods)
        self.regions = list(regions)
        if self.stores:
            self.reference = _city_center(self.stores) or self.reference
        self.options = build_index(self.stores, self.neighborhoods, self.regions, self.categories, CATEGORY_STYLES)
        self.markers.register_stores(self.stores)
        if self.selected_store is not None:
            self.selected_store = self.store_by_id(self.selected_store.id)
        self.refresh()

    def refresh(self) -> FilterResult:
        self.result = apply_filters(self.stores, self.spec, self.reference)
        self.markers.sync_visible(self.result.stores)
        return self.result

    @property
    def visible_stores(self) -> tuple[Store, ...]:
        return self.result.stores

    def store_by_id(self, store_id: str) -> Store | None:
        return next((store for store in self.stores if store.id == store_id), None)

    def apply_params(self, params: Mapping[str, str]) -> FilterResult:
        self.spec = filter_spec_from_params(params)
        return self.refresh()

    def query_params(self) -> dict[str, str]:
        return filter_spec_to_params(self.spec)

    def set_search_query(self, query: str) -> FilterResult:
        return self._update(query=query)

    def set_sort(self, sort: SortKey | str) -> FilterResult:
        return self._update(sort=SortKey(sort))

    def add_category(self, slug: str) -> FilterResult:
        return self._update(categories=_with(self.spec.categories, slug))

    def remove_category(self, slug: str) -> FilterResult:
        return self._update(categories=_without(self.spec.categories, slug))

    def add_neighborhood(self, slug: str) -> FilterResult:
        return self._update(neighborhoods=_with(self.spec.neighborhoods, slug))

    def remove_neighborhood(self, slug: str) -> FilterResult:
        return self._update(neighborhoods=_without(self.spec.neighborhoods, slug))

    def add_region(self, slug: str) -> FilterResult:
        return self._update(regions=_with(self.spec.regions, slug))

    def remove_region(self, slug: str) -> FilterResult:
        return self._update(regions=_without(self.spec.regions, slug))

    def clear_filters(self) -> FilterResult:
        return self._update(categories=(), neighborhoods=(), regions=(), store_ids=(), query="")

    def select_store(self, store: Store | str) -> None:
        selected = self.store_by_id(store) if isinstance(store, str) else store
        if selected is None:
            return
        self.selected_store = selected
        self.markers.select(selected)

    def clear_selection(self) -> None:
        self.selected_store = None
        self.detail_open = False
        self.markers.clear_selection()

    def hover_store(self, store_id: str | None) -> None:
        self.hovered_store_id = store_id
        self.markers.hover(store_id)

    def autocomplete(self, query: str) -> list[AutocompleteOption]:
        return match_options(self.options, query)

    def choose_option(self, option: AutocompleteOption) -> None:
        source_id = option_source_id(option)
        if option.kind == OptionKind.STORE:
            store = self.store_by_id(source_id)
            if store is not None:
                self.select_store(store)
                self.detail_open = True
        elif option.kind == OptionKind.NEIGHBORHOOD:
            neighborhood = next((item for item in self.neighborhoods if item.id == source_id), None)
            if neighborhood is not None:
                self.add_neighborhood(neighborhood.slug)
                self.active_tab = REGIONS_TAB
        elif option.kind == OptionKind.REGION:
            region = next((item for item in self.regions if item.id == source_id), None)
            if region is not None:
                self.add_region(region.slug)
                self.active_tab = REGIONS_TAB
        elif option.kind == OptionKind.CATEGORY:
            category = next((item for item in self.categories if item.id == source_id), None)
            if category is not None:
                self.add_category(category.slug)
                self.active_tab = CATEGORIES_TAB
        elif option.kind == OptionKind.STORE_TYPE:
            self.set_search_query(category_style(source_id).name)

    def rows(self) -> list[StoreRow]:
        selected_id = self.selected_store.id if self.selected_store else None
        rows: list[StoreRow] = []
        for store in self.result.stores:
            store_type = classify_store(store)
            price_level = store.metrics.price_level if store.metrics else None
            rows.append(
                StoreRow(
                    store=store,
                    distance_miles=store_distance(store, self.reference),
                    store_type=store_type,
                    style=category_style(store_type),
                    price_indicator="$" * price_level if price_level else "",
                    is_selected=store.id == selected_id,
                    is_hovered=store.id == self.hovered_store_id,
                )
            )
        return rows

    def close(self) -> None:
        self.closed = True
        self.markers.teardown()

    def _update(self, **changes: object) -> FilterResult:
        self.spec = replace(self.spec, **changes)
        return self.refresh()

    def _marker_hover(self, store: Store | None) -> None:
        self.hovered_store_id = store.id if store is not None else None


def _with(values: tuple[str, ...], value: str) -> tuple[str, ...]:
    if not value or value in values:
        return values
    return (*values, value)


def _without(values: tuple[str, ...], value: str) -> tuple[str, ...]:
    return tuple(item for item in values if item != value)


def _city_center(stores: list[Store]) -> Coordinate | None:
    for store in stores:
        region = store.region
        if region is not None and region.city is not None and region.city.center is not None:
            return region.city.center
    return None
