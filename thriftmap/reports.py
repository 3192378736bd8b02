from __future__ import annotations

from collections import Counter

from thriftmap.models import Store

TOP_NEIGHBORHOODS = 10


def summarize_stores(stores: list[Store]) -> dict[str, object]:
    category_counts = Counter(
        store.primary_category.name if store.primary_category else "Uncategorized" for store in stores
    )
    neighborhood_counts = Counter(store.neighborhood.name if store.neighborhood else "Unknown" for store in stores)

    return {
        "total_stores": len(stores),
        "by_category": _ranked(category_counts),
        "top_neighborhoods": _ranked(neighborhood_counts)[:TOP_NEIGHBORHOODS],
        "data_quality": {
            "missing_description": sum(1 for store in stores if not store.card_description),
            "missing_location": sum(1 for store in stores if store.coordinate is None),
            "missing_hours": sum(1 for store in stores if not store.hours),
        },
    }


def format_summary(summary: dict[str, object]) -> str:
    lines = ["Data Summary:", f"Total stores: {summary['total_stores']}", "", "By Category:"]
    lines.extend(f"  {name}: {count}" for name, count in summary["by_category"])
    lines.extend(["", "By Neighborhood (Top 10):"])
    lines.extend(f"  {name}: {count}" for name, count in summary["top_neighborhoods"])
    quality = summary["data_quality"]
    lines.extend(
        [
            "",
            "Data Quality:",
            f"  Missing descriptions: {quality['missing_description']}",
            f"  Missing locations: {quality['missing_location']}",
            f"  Missing hours: {quality['missing_hours']}",
        ]
    )
    return "\n".join(lines)


def _ranked(counts: Counter) -> list[tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
