"""Shared builders and fakes for discovery tests."""

import json
from pathlib import Path

import pytest

from thriftmap.documents import slugify
from thriftmap.models import Category, City, Coordinate, Neighborhood, Region, Store, StoreMetrics

NYC = City(
    id="city-nyc",
    name="New York City",
    slug="new-york",
    state="NY",
    center=Coordinate(lat=40.7128, lng=-74.0060),
    default_zoom=12,
)


def make_category(slug):
    return Category(id=f"cat-{slug}", name=slug.title(), slug=slug)


def make_region(name, city=NYC):
    slug = slugify(name)
    return Region(id=f"region-{slug}", name=name, slug=slug, city=city)


def make_neighborhood(name, region="Manhattan"):
    slug = slugify(name)
    return Neighborhood(id=f"nbhd-{slug}", name=name, slug=slug, region=make_region(region))


def make_store(
    store_id,
    name,
    category="thrift",
    neighborhood="SoHo",
    region="Manhattan",
    rating=None,
    reviews=None,
    lat=40.7233,
    lng=-74.0030,
    description=None,
    secondary=(),
):
    metrics = None
    if rating is not None or reviews is not None:
        metrics = StoreMetrics(rating=rating, review_count=reviews)
    return Store(
        id=str(store_id),
        name=name,
        slug=slugify(name),
        card_description=description,
        lat=lat,
        lng=lng,
        primary_category=make_category(category) if category else None,
        secondary_categories=[make_category(slug) for slug in secondary],
        neighborhood=make_neighborhood(neighborhood, region) if neighborhood else None,
        metrics=metrics,
    )


class FakeMapView:
    """Records every map call; can be told to fail for specific stores."""

    def __init__(self, fail_create_for=(), fail_fit=False):
        self.calls = []
        self.fail_create_for = set(fail_create_for)
        self.fail_fit = fail_fit

    def create_marker(self, coordinate, content):
        if content.store_id in self.fail_create_for:
            raise RuntimeError(f"cannot place {content.store_id}")
        handle = f"marker:{content.store_id}"
        self.calls.append(("create_marker", handle))
        return handle

    def attach(self, handle):
        self.calls.append(("attach", handle))

    def detach(self, handle):
        self.calls.append(("detach", handle))

    def release(self, handle):
        self.calls.append(("release", handle))

    def set_size(self, handle, size):
        self.calls.append(("set_size", handle, size))

    def set_z(self, handle, tier):
        self.calls.append(("set_z", handle, tier))

    def toggle_popup(self, handle):
        self.calls.append(("toggle_popup", handle))

    def fly_to(self, coordinate, zoom, duration_ms):
        self.calls.append(("fly_to", coordinate, zoom))

    def fit_bounds(self, bounds, padding, duration_ms):
        if self.fail_fit:
            raise RuntimeError("bounds rejected")
        self.calls.append(("fit_bounds", bounds, padding))

    def ops(self, name):
        return [call for call in self.calls if call[0] == name]


class FakeRepository:
    def __init__(self, stores=(), categories=(), neighborhoods=(), regions=(), posts=()):
        self.stores = list(stores)
        self.categories = list(categories)
        self.neighborhoods = list(neighborhoods)
        self.regions = list(regions)
        self.posts = list(posts)

    def get_all_stores(self):
        return list(self.stores)

    def get_stores_by_city(self, city_slug):
        return list(self.stores)

    def get_store_by_slug(self, slug):
        return next((store for store in self.stores if store.slug == slug), None)

    def get_all_categories(self):
        return list(self.categories)

    def get_all_neighborhoods(self):
        return list(self.neighborhoods)

    def get_neighborhoods_by_city(self, city_slug):
        return list(self.neighborhoods)

    def get_regions_by_city(self, city_slug):
        return list(self.regions)

    def get_all_blog_posts(self):
        return list(self.posts)

    def get_blog_post_by_slug(self, slug):
        return next((post for post in self.posts if post.slug == slug), None)


# ---------------------------------------------------------------------------
# CMS-shaped documents
# ---------------------------------------------------------------------------

CITY_DOC = {
    "_id": "city-nyc",
    "name": "New York City",
    "slug": {"current": "new-york"},
    "state": "NY",
    "center": {"lat": 40.7128, "lng": -74.006},
    "defaultZoom": 12,
}

MANHATTAN_DOC = {"_id": "region-manhattan", "name": "Manhattan", "slug": {"current": "manhattan"}, "city": CITY_DOC}
BROOKLYN_DOC = {"_id": "region-brooklyn", "name": "Brooklyn", "slug": {"current": "brooklyn"}, "city": CITY_DOC}

STORE_DOCS = [
    {
        "_id": "store-1",
        "name": "Beacon's Closet",
        "slug": {"current": "beacons-closet"},
        "cardDescription": "Buy-sell-trade vintage clothing.",
        "description": [
            {"_type": "block", "children": [{"_type": "span", "text": "Huge warehouse of used clothes."}]},
            {"_type": "block", "children": [{"_type": "span", "text": "Bring your own bag."}]},
        ],
        "location": {"lat": 40.7205, "lng": -73.9550},
        "formattedAddress": "74 Guernsey St, Brooklyn, NY 11222",
        "placeId": "place-1",
        "hours": {"weekdayText": ["Monday: 11AM-8PM", "Tuesday: 11AM-8PM"]},
        "primaryCategory": {"_id": "cat-vintage", "name": "Vintage", "slug": {"current": "vintage"}},
        "secondaryCategories": [{"_id": "cat-thrift", "name": "Thrift", "slug": {"current": "thrift"}}],
        "neighborhood": {
            "_id": "nbhd-williamsburg",
            "name": "Williamsburg",
            "slug": {"current": "williamsburg"},
            "region": BROOKLYN_DOC,
        },
        "metrics": {"rating": 4.3, "userRatingsTotal": 1200, "priceLevel": 2},
        "website": "https://www.beaconscloset.com/",
    },
    {
        "_id": "store-2",
        "name": "Housing Works Thrift Shop",
        "slug": {"current": "housing-works-soho"},
        "cardDescription": "Charity thrift with furniture and books.",
        "location": {"lat": 40.7241, "lng": -73.9987},
        "primaryCategory": {"_id": "cat-thrift", "name": "Thrift", "slug": {"current": "thrift"}},
        "neighborhood": {
            "_id": "nbhd-soho",
            "name": "SoHo",
            "slug": {"current": "soho"},
            "region": MANHATTAN_DOC,
        },
        "metrics": {"rating": 4.5, "userRatingsTotal": 300},
    },
    {
        "_id": "store-3",
        "name": "Designer Resale Consignment",
        "slug": {"current": "designer-resale"},
        "cardDescription": "Luxury resale on the Upper East Side.",
        "description": (
            '<div class="store-description"><p>Luxury <strong>consignment</strong> since 1985.</p>'
            "<p>Appointments recommended.</p></div>"
        ),
        "location": {"lat": None, "lng": None},
        "primaryCategory": {"_id": "cat-consignment", "name": "Consignment", "slug": {"current": "consignment"}},
        "neighborhood": {
            "_id": "nbhd-ues",
            "name": "Upper East Side",
            "slug": {"current": "upper-east-side"},
            "region": MANHATTAN_DOC,
        },
    },
]

# Rows as written by the data scripts: names only, no city in the chain.
CITYLESS_STORE_DOCS = [
    {
        "_id": "s1",
        "name": "SoHo Thrift",
        "primaryCategory": {"name": "Thrift"},
        "neighborhood": {"name": "SoHo", "region": {"name": "Manhattan"}},
        "location": {"lat": 40.7233, "lng": -74.003},
    },
]


def write_export(path: Path, docs=None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(STORE_DOCS if docs is None else docs), encoding="utf-8")
    return path


@pytest.fixture
def export_file(tmp_path: Path) -> Path:
    return write_export(tmp_path / "data" / "stores-export.json")


@pytest.fixture
def map_view() -> FakeMapView:
    return FakeMapView()
