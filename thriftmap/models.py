from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
import math


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(slots=True)
class StoreMetrics:
    rating: float | None = None
    review_count: int | None = None
    price_level: int | None = None


@dataclass(slots=True)
class City:
    id: str
    name: str
    slug: str
    state: str | None = None
    center: Coordinate | None = None
    default_zoom: int | None = None


@dataclass(slots=True)
class Region:
    id: str
    name: str
    slug: str
    city: City | None = None


@dataclass(slots=True)
class Neighborhood:
    id: str
    name: str
    slug: str
    region: Region | None = None


@dataclass(slots=True)
class Category:
    id: str
    name: str
    slug: str
    description: str | None = None


@dataclass(slots=True)
class Store:
    id: str
    name: str
    slug: str = ""
    card_description: str | None = None
    description: str | None = None
    editorial_summary: str | None = None
    lat: float | None = None
    lng: float | None = None
    formatted_address: str | None = None
    place_id: str | None = None
    hours: list[str] = field(default_factory=list)
    primary_category: Category | None = None
    secondary_categories: list[Category] = field(default_factory=list)
    neighborhood: Neighborhood | None = None
    metrics: StoreMetrics | None = None
    website: str | None = None
    google_maps_url: str | None = None

    @property
    def coordinate(self) -> Coordinate | None:
        if self.lat is None or self.lng is None:
            return None
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            return None
        return Coordinate(lat=self.lat, lng=self.lng)

    @property
    def region(self) -> Region | None:
        if self.neighborhood is None:
            return None
        return self.neighborhood.region

    def category_slugs(self) -> list[str]:
        slugs = [self.primary_category.slug] if self.primary_category else []
        slugs.extend(category.slug for category in self.secondary_categories)
        return slugs

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(slots=True)
class BlogPost:
    id: str
    title: str
    slug: str
    published_at: str
    excerpt: str = ""
    author: str | None = None
    category_slugs: list[str] = field(default_factory=list)
    featured_store_slugs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


class SortKey(str, Enum):
    ALPHABETICAL = "alphabetical"
    RATING = "rating"
    DISTANCE = "distance"


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Current discovery filter state.

    Structural groups OR within themselves and AND across each other. An empty
    group matches everything. ``query`` narrows the structural result.
    """

    categories: tuple[str, ...] = ()
    neighborhoods: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    store_ids: tuple[str, ...] = ()
    query: str = ""
    sort: SortKey = SortKey.ALPHABETICAL

    @property
    def has_structural_filters(self) -> bool:
        return bool(self.categories or self.neighborhoods or self.regions or self.store_ids)

    @property
    def has_active_filters(self) -> bool:
        return self.has_structural_filters or bool(self.query.strip())


class OptionKind(str, Enum):
    STORE = "Store"
    NEIGHBORHOOD = "Neighborhood"
    REGION = "Region"
    CATEGORY = "Category"
    STORE_TYPE = "Store Type"


@dataclass(frozen=True, slots=True)
class AutocompleteOption:
    id: str
    label: str
    kind: OptionKind
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "label": self.label, "kind": self.kind.value, "value": self.value}
