from argparse import ArgumentParser
import asyncio
import logging
from pathlib import Path

from thriftmap.config import load_settings
from thriftmap.filters import filter_spec_to_params
from thriftmap.generator import generate_csv, generate_kml
from thriftmap.markers import MapCommandRecorder
from thriftmap.models import SortKey
from thriftmap.reports import format_summary, summarize_stores
from thriftmap.repository import build_repository
from thriftmap.session import DiscoverySession

BASE_DIR = Path(__file__).resolve().parent

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def open_session(
    categories: list[str] | None = None,
    neighborhoods: list[str] | None = None,
    regions: list[str] | None = None,
    query: str = "",
    sort: str = SortKey.ALPHABETICAL.value,
) -> DiscoverySession:
    settings = load_settings(BASE_DIR)
    session = DiscoverySession(build_repository(settings), MapCommandRecorder(), city_slug=settings.city_slug)
    asyncio.run(session.load())
    session.apply_params(
        {
            "category": ",".join(categories or []),
            "neighborhood": ",".join(neighborhoods or []),
            "region": ",".join(regions or []),
            "q": query,
            "sort": sort,
        }
    )
    return session


def summary() -> str:
    session = open_session()
    try:
        return format_summary(summarize_stores(session.stores))
    finally:
        session.close()


def search(categories: list[str], neighborhoods: list[str], regions: list[str], query: str, sort: str) -> list[str]:
    session = open_session(categories, neighborhoods, regions, query, sort)
    try:
        lines: list[str] = []
        for row in session.rows():
            neighborhood = row.store.neighborhood.name if row.store.neighborhood else "Unknown"
            distance = f"{row.distance_miles:.1f} mi" if row.distance_miles is not None else "-"
            lines.append(f"{row.store.name} | {neighborhood} | {row.style.name} | {distance}")
        params = filter_spec_to_params(session.spec, include_search=True)
        logger.info(f"{session.result.filtered_count} of {session.result.total_count} stores match {params}")
        return lines
    finally:
        session.close()


def export(
    output: Path,
    export_format: str,
    categories: list[str],
    neighborhoods: list[str],
    regions: list[str],
    query: str,
) -> int:
    session = open_session(categories, neighborhoods, regions, query)
    try:
        stores = list(session.visible_stores)
    finally:
        session.close()
    if export_format == "kml":
        generate_kml(stores, output)
    else:
        generate_csv(stores, output)
    return len(stores)


def _add_filter_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--category", action="append", default=[], help="Category slug (repeatable)")
    parser.add_argument("--neighborhood", action="append", default=[], help="Neighborhood slug (repeatable)")
    parser.add_argument("--region", action="append", default=[], help="Region slug (repeatable)")
    parser.add_argument("--query", default="", help="Free-text search")


def main() -> int:
    parser = ArgumentParser(description="NYC thrift store directory CLI")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("summary", help="Print a data summary of the loaded stores")
    search_parser = sub.add_parser("search", help="Filter, search and sort stores")
    _add_filter_arguments(search_parser)
    search_parser.add_argument(
        "--sort",
        choices=[key.value for key in SortKey],
        default=SortKey.ALPHABETICAL.value,
        help="Sort order (default: alphabetical)",
    )
    export_parser = sub.add_parser("export", help="Export the filtered store list")
    _add_filter_arguments(export_parser)
    export_parser.add_argument("--format", choices=["csv", "kml"], default="csv", dest="export_format")
    export_parser.add_argument("--output", type=Path, required=True, help="Destination file")
    args = parser.parse_args()

    if args.command == "summary":
        print(summary())
        return 0
    if args.command == "search":
        for line in search(args.category, args.neighborhood, args.region, args.query, args.sort):
            print(line)
        return 0
    if args.command == "export":
        count = export(args.output, args.export_format, args.category, args.neighborhood, args.region, args.query)
        print(f"Exported {count} stores to {args.output}")
        return 0
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
