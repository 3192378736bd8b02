import csv
from collections import defaultdict
from pathlib import Path
import xml.etree.ElementTree as ET

from thriftmap.category_utils import CATEGORY_STYLES, classify_store
from thriftmap.models import Store

KML_NS = "http://www.opengis.net/kml/2.2"
ET.register_namespace("", KML_NS)

KML_DOCUMENT_NAME = "NYC Thrift Stores"

CSV_HEADERS = [
    "id",
    "name",
    "neighborhood",
    "region",
    "category",
    "store_type",
    "rating",
    "review_count",
    "price_level",
    "lat",
    "lng",
    "formatted_address",
    "website",
]


def _kml(parent: ET.Element, tag: str, text: str | None = None, **attrib: str) -> ET.Element:
    node = ET.SubElement(parent, f"{{{KML_NS}}}{tag}", attrib)
    if text is not None:
        node.text = text
    return node


def _kml_color(hex_color: str) -> str:
    # KML colors are aabbggrr.
    value = hex_color.lstrip("#").lower()
    return f"ff{value[4:6]}{value[2:4]}{value[0:2]}"


def _csv_row(store: Store) -> dict[str, object]:
    metrics = store.metrics
    region = store.region
    return {
        "id": store.id,
        "name": store.name,
        "neighborhood": store.neighborhood.name if store.neighborhood else "",
        "region": region.name if region else "",
        "category": store.primary_category.name if store.primary_category else "",
        "store_type": classify_store(store),
        "rating": metrics.rating if metrics else None,
        "review_count": metrics.review_count if metrics else None,
        "price_level": metrics.price_level if metrics else None,
        "lat": store.lat,
        "lng": store.lng,
        "formatted_address": store.formatted_address,
        "website": store.website,
    }


def _placemark(folder: ET.Element, store: Store, style_key: str) -> None:
    placemark = _kml(folder, "Placemark")
    _kml(placemark, "name", store.name)
    neighborhood = store.neighborhood.name if store.neighborhood else ""
    _kml(placemark, "description", store.card_description or neighborhood)
    _kml(placemark, "styleUrl", f"#{style_key}")
    coordinate = store.coordinate
    if coordinate is not None:
        point = _kml(placemark, "Point")
        _kml(point, "coordinates", f"{coordinate.lng},{coordinate.lat},0")


def generate_kml(stores: list[Store], output_path: Path) -> None:
    """Write stores as KML, one folder and one pin style per store type."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    by_type: dict[str, list[Store]] = defaultdict(list)
    for store in stores:
        by_type[classify_store(store)].append(store)

    root = ET.Element(f"{{{KML_NS}}}kml")
    document = _kml(root, "Document")
    _kml(document, "name", KML_DOCUMENT_NAME)

    for key, style in CATEGORY_STYLES.items():
        icon_style = _kml(_kml(document, "Style", id=key), "IconStyle")
        _kml(icon_style, "color", _kml_color(style.color))
        _kml(icon_style, "scale", "1.0")

    for key, style in CATEGORY_STYLES.items():
        if not by_type.get(key):
            continue
        folder = _kml(document, "Folder")
        _kml(folder, "name", style.name)
        for store in sorted(by_type[key], key=lambda value: value.name.casefold()):
            _placemark(folder, store, key)

    ET.ElementTree(root).write(output_path, encoding="utf-8", xml_declaration=True)


def generate_csv(stores: list[Store], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_HEADERS)
        writer.writeheader()
        for store in sorted(stores, key=lambda value: (value.name.casefold(), value.id)):
            writer.writerow(_csv_row(store))
