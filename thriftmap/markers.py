"""Marker lifecycle and camera control for the discovery map.

Markers are created once per store in the full collection and afterwards only
attached to or detached from the map as the visible subset changes. Every
call into the map view is guarded individually so a single bad record or a
failing camera operation never aborts the rest of a reconciliation pass.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
from typing import Any, Callable, Iterable, Protocol

from thriftmap.category_utils import category_style, classify_store
from thriftmap.geo import Bounds, bounds_for
from thriftmap.models import Coordinate, Store

logger = logging.getLogger(__name__)

SELECTED_ZOOM = 15
FLY_TO_DURATION_MS = 1000
FIT_BOUNDS_PADDING = 50
FIT_BOUNDS_DURATION_MS = 1000
BASE_SIZE = "md"
HOVER_SIZE = "lg"
BASE_Z = 1
HOVER_Z = 1000


@dataclass(frozen=True, slots=True)
class MarkerContent:
    store_id: str
    name: str
    neighborhood: str
    category: str
    store_type: str
    color: str
    icon: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


class MapView(Protocol):
    def create_marker(self, coordinate: Coordinate, content: MarkerContent) -> Any: ...

    def attach(self, handle: Any) -> None: ...

    def detach(self, handle: Any) -> None: ...

    def release(self, handle: Any) -> None: ...

    def set_size(self, handle: Any, size: str) -> None: ...

    def set_z(self, handle: Any, tier: int) -> None: ...

    def toggle_popup(self, handle: Any) -> None: ...

    def fly_to(self, coordinate: Coordinate, zoom: int, duration_ms: int) -> None: ...

    def fit_bounds(self, bounds: Bounds, padding: int, duration_ms: int) -> None: ...


@dataclass(slots=True)
class MarkerEntry:
    handle: Any
    attached: bool = False


@dataclass(slots=True)
class SyncResult:
    attached: list[str] = field(default_factory=list)
    detached: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.attached or self.detached)


def marker_content(store: Store) -> MarkerContent:
    store_type = classify_store(store)
    style = category_style(store_type)
    return MarkerContent(
        store_id=store.id,
        name=store.name,
        neighborhood=store.neighborhood.name if store.neighborhood else "",
        category=store.primary_category.name if store.primary_category else "",
        store_type=store_type,
        color=style.color,
        icon=style.icon,
    )


class MarkerSynchronizer:
    def __init__(
        self,
        map_view: MapView,
        on_store_select: Callable[[Store], None] | None = None,
        on_store_hover: Callable[[Store | None], None] | None = None,
    ) -> None:
        self.map_view = map_view
        self.on_store_select = on_store_select
        self.on_store_hover = on_store_hover
        self._markers: dict[str, MarkerEntry] = {}
        self._stores_by_id: dict[str, Store] = {}
        self._visible: list[Store] = []
        self._fitted_ids: frozenset[str] | None = None
        self.selected_id: str | None = None
        self.hovered_id: str | None = None

    @property
    def marker_ids(self) -> list[str]:
        return list(self._markers)

    def is_attached(self, store_id: str) -> bool:
        entry = self._markers.get(store_id)
        return entry is not None and entry.attached

    def register_stores(self, stores: Iterable[Store]) -> int:
        """Create detached markers for the full collection. Returns how many were created."""
        self._stores_by_id = {store.id: store for store in stores}

        for store_id in [key for key in self._markers if key not in self._stores_by_id]:
            self._release(store_id)

        created = 0
        for store in self._stores_by_id.values():
            if store.id in self._markers:
                continue
            coordinate = store.coordinate
            if coordinate is None:
                continue
            try:
                handle = self.map_view.create_marker(coordinate, marker_content(store))
            except Exception as error:
                logger.warning(f"Skipping marker for store {store.id}: {error}")
                continue
            self._markers[store.id] = MarkerEntry(handle=handle)
            created += 1
        return created

    def sync_visible(self, stores: Iterable[Store]) -> SyncResult:
        self._visible = list(stores)
        visible_ids = {store.id for store in self._visible}
        result = SyncResult()

        for store_id, entry in self._markers.items():
            if store_id in visible_ids and not entry.attached:
                try:
                    self.map_view.attach(entry.handle)
                except Exception as error:
                    logger.warning(f"Failed to attach marker for store {store_id}: {error}")
                    continue
                entry.attached = True
                result.attached.append(store_id)
            elif store_id not in visible_ids and entry.attached:
                try:
                    self.map_view.detach(entry.handle)
                except Exception as error:
                    logger.warning(f"Failed to detach marker for store {store_id}: {error}")
                    continue
                entry.attached = False
                result.detached.append(store_id)

        if self.selected_id is None:
            self._fit_visible(force=False)
        return result

    def select(self, store: Store) -> None:
        self.selected_id = store.id
        coordinate = store.coordinate
        if coordinate is None:
            return
        try:
            self.map_view.fly_to(coordinate, SELECTED_ZOOM, FLY_TO_DURATION_MS)
            entry = self._markers.get(store.id)
            if entry is not None:
                self.map_view.toggle_popup(entry.handle)
        except Exception as error:
            logger.warning(f"Failed to focus store {store.id}: {error}")

    def clear_selection(self) -> None:
        if self.selected_id is None:
            return
        self.selected_id = None
        self._fit_visible(force=True)

    def hover(self, store_id: str | None) -> None:
        if store_id == self.hovered_id:
            return
        previous = self.hovered_id
        self.hovered_id = store_id
        if previous is not None:
            self._restyle(previous, BASE_SIZE, BASE_Z)
        if store_id is not None:
            self._restyle(store_id, HOVER_SIZE, HOVER_Z)

    def marker_clicked(self, store_id: str) -> None:
        store = self._stores_by_id.get(store_id)
        if store is not None and self.on_store_select is not None:
            self.on_store_select(store)

    def marker_hovered(self, store_id: str | None) -> None:
        store = self._stores_by_id.get(store_id) if store_id is not None else None
        self.hover(store.id if store is not None else None)
        if self.on_store_hover is not None:
            self.on_store_hover(store)

    def teardown(self) -> None:
        for store_id in list(self._markers):
            self._release(store_id)
        self._stores_by_id = {}
        self._visible = []
        self._fitted_ids = None
        self.selected_id = None
        self.hovered_id = None

    def _fit_visible(self, force: bool) -> None:
        visible_ids = frozenset(store.id for store in self._visible)
        if not force and visible_ids == self._fitted_ids:
            return
        self._fitted_ids = visible_ids

        coordinates = [
            store.coordinate
            for store in self._visible
            if store.id in self._markers and store.coordinate is not None
        ]
        if not coordinates:
            return
        try:
            bounds = bounds_for(coordinates)
            if bounds is not None:
                self.map_view.fit_bounds(bounds, FIT_BOUNDS_PADDING, FIT_BOUNDS_DURATION_MS)
        except Exception as error:
            logger.warning(f"Failed to fit map bounds: {error}")

    def _restyle(self, store_id: str, size: str, tier: int) -> None:
        entry = self._markers.get(store_id)
        if entry is None:
            return
        try:
            self.map_view.set_size(entry.handle, size)
            self.map_view.set_z(entry.handle, tier)
        except Exception as error:
            logger.warning(f"Failed to restyle marker for store {store_id}: {error}")

    def _release(self, store_id: str) -> None:
        entry = self._markers.pop(store_id)
        try:
            if entry.attached:
                self.map_view.detach(entry.handle)
            self.map_view.release(entry.handle)
        except Exception as error:
            logger.warning(f"Failed to release marker for store {store_id}: {error}")


class MapCommandRecorder:
    """Map view that records imperative commands for a browser map to replay."""

    def __init__(self) -> None:
        self.commands: list[dict[str, object]] = []
        self._next_handle = 0

    def create_marker(self, coordinate: Coordinate, content: MarkerContent) -> int:
        self._next_handle += 1
        self.commands.append(
            {
                "op": "create_marker",
                "handle": self._next_handle,
                "lat": coordinate.lat,
                "lng": coordinate.lng,
                "content": content.to_dict(),
            }
        )
        return self._next_handle

    def attach(self, handle: int) -> None:
        self.commands.append({"op": "attach", "handle": handle})

    def detach(self, handle: int) -> None:
        self.commands.append({"op": "detach", "handle": handle})

    def release(self, handle: int) -> None:
        self.commands.append({"op": "release", "handle": handle})

    def set_size(self, handle: int, size: str) -> None:
        self.commands.append({"op": "set_size", "handle": handle, "size": size})

    def set_z(self, handle: int, tier: int) -> None:
        self.commands.append({"op": "set_z", "handle": handle, "tier": tier})

    def toggle_popup(self, handle: int) -> None:
        self.commands.append({"op": "toggle_popup", "handle": handle})

    def fly_to(self, coordinate: Coordinate, zoom: int, duration_ms: int) -> None:
        self.commands.append(
            {"op": "fly_to", "lat": coordinate.lat, "lng": coordinate.lng, "zoom": zoom, "duration": duration_ms}
        )

    def fit_bounds(self, bounds: Bounds, padding: int, duration_ms: int) -> None:
        self.commands.append(
            {"op": "fit_bounds", "bounds": bounds.to_dict(), "padding": padding, "duration": duration_ms}
        )

    def drain(self) -> list[dict[str, object]]:
        commands, self.commands = self.commands, []
        return commands
