from __future__ import annotations

from dataclasses import asdict, replace
import json
from pathlib import Path
import tempfile
from urllib.parse import urlencode, urlparse

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response
from fastapi.templating import Jinja2Templates

from thriftmap.category_utils import CATEGORY_STYLES, MARKER_SIZES, category_style, classify_store
from thriftmap.config import Settings, load_settings
from thriftmap.filters import filter_spec_to_params
from thriftmap.generator import generate_csv, generate_kml
from thriftmap.markers import BASE_SIZE, MapCommandRecorder
from thriftmap.models import FilterSpec, SortKey, Store
from thriftmap.repository import CachedContentRepository, ContentRepository, build_repository
from thriftmap.session import DiscoverySession

BASE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES = Jinja2Templates(directory=str(BASE_DIR / "templates"))

SORT_LABELS = {
    SortKey.ALPHABETICAL: "A-Z",
    SortKey.RATING: "Top rated",
    SortKey.DISTANCE: "Nearest",
}

MARKER_SIZE_TABLE = {key: asdict(size) for key, size in MARKER_SIZES.items()}

EXPORT_FORMATS = {
    "csv": ("stores.csv", "text/csv"),
    "kml": ("stores.kml", "application/vnd.google-earth.kml+xml"),
}


def create_app(repository: ContentRepository, settings: Settings) -> FastAPI:
    app = FastAPI(title="NYC Thrift Map")
    app.state.repository = CachedContentRepository(repository, ttl_seconds=settings.cache_seconds)
    app.state.settings = settings

    async def open_session(request: Request) -> tuple[DiscoverySession, MapCommandRecorder]:
        recorder = MapCommandRecorder()
        session = DiscoverySession(app.state.repository, recorder, city_slug=app.state.settings.city_slug)
        await session.load()
        session.apply_params(request.query_params)
        return session, recorder

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/")
    async def home(request: Request):
        session, recorder = await open_session(request)
        try:
            selected_id = request.query_params.get("selected", "").strip()
            if selected_id:
                session.select_store(selected_id)
            map_commands = recorder.drain()
            hover_commands = _hover_commands(session, recorder)

            context = {
                "request": request,
                "rows": session.rows(),
                "result": session.result,
                "spec": session.spec,
                "selected_store": session.selected_store,
                "categories": session.categories,
                "neighborhoods": session.neighborhoods,
                "regions": session.regions,
                "filter_chips": _filter_chips(session),
                "clear_url": _page_url(FilterSpec(sort=session.spec.sort)),
                "sort_links": _sort_links(session.spec),
                "legend": list(CATEGORY_STYLES.values()),
                "query_string": urlencode(filter_spec_to_params(session.spec, include_search=True)),
                "map_commands_json": _json_script_literal(map_commands),
                "hover_commands_json": _json_script_literal(hover_commands),
                "marker_sizes_json": _json_script_literal(MARKER_SIZE_TABLE),
                "base_marker_size": BASE_SIZE,
                "google_maps_js_api_key": app.state.settings.google_maps_js_api_key,
            }
        finally:
            session.close()
        return TEMPLATES.TemplateResponse(request=request, name="index.html", context=context)

    @app.get("/stores/{slug}")
    def store_detail(request: Request, slug: str):
        store = app.state.repository.get_store_by_slug(slug)
        if store is None:
            raise HTTPException(status_code=404, detail="Store not found")

        store_type = classify_store(store)
        price_level = store.metrics.price_level if store.metrics else None
        context = {
            "request": request,
            "store": store,
            "style": category_style(store_type),
            "price_indicator": "$" * price_level if price_level else "",
            "website_domain": website_domain(store.website),
            "maps_url": google_maps_link(store),
        }
        return TEMPLATES.TemplateResponse(request=request, name="store.html", context=context)

    @app.get("/api/stores")
    async def api_stores(request: Request) -> dict[str, object]:
        session, _recorder = await open_session(request)
        try:
            rows = session.rows()
            return {
                "stores": [
                    {
                        "id": row.store.id,
                        "name": row.store.name,
                        "slug": row.store.slug,
                        "neighborhood": row.store.neighborhood.name if row.store.neighborhood else None,
                        "region": row.store.region.name if row.store.region else None,
                        "store_type": row.store_type,
                        "distance_miles": round(row.distance_miles, 2) if row.distance_miles is not None else None,
                        "lat": row.store.lat,
                        "lng": row.store.lng,
                    }
                    for row in rows
                ],
                "filtered_count": session.result.filtered_count,
                "total_count": session.result.total_count,
                "has_active_filters": session.result.has_active_filters,
                "query": session.query_params(),
            }
        finally:
            session.close()

    @app.get("/api/autocomplete")
    async def api_autocomplete(request: Request, q: str = "") -> list[dict[str, str]]:
        session, _recorder = await open_session(request)
        try:
            return [option.to_dict() for option in session.autocomplete(q)]
        finally:
            session.close()

    @app.get("/api/choose")
    async def api_choose(request: Request, option_id: str) -> dict[str, object]:
        session, _recorder = await open_session(request)
        try:
            option = next((item for item in session.options if item.id == option_id), None)
            if option is None:
                raise HTTPException(status_code=404, detail="Option not found")
            session.choose_option(option)
            selected_id = session.selected_store.id if session.selected_store else None
            url = _page_url(session.spec)
            if selected_id:
                url += ("&" if "?" in url else "?") + urlencode({"selected": selected_id})
            return {
                "url": url,
                "active_tab": session.active_tab,
                "selected": selected_id,
                "detail_open": session.detail_open,
                "query": session.spec.query,
            }
        finally:
            session.close()

    @app.get("/api/blog")
    def api_blog() -> list[dict[str, object]]:
        return [post.to_dict() for post in app.state.repository.get_all_blog_posts()]

    @app.post("/api/refresh")
    def api_refresh() -> dict[str, str]:
        app.state.repository.refresh()
        return {"status": "refreshed"}

    @app.get("/export/{export_format}")
    async def export(request: Request, export_format: str):
        target = EXPORT_FORMATS.get(export_format)
        if target is None:
            raise HTTPException(status_code=404, detail="Export format not found")
        filename, media_type = target

        session, _recorder = await open_session(request)
        try:
            stores = list(session.visible_stores)
        finally:
            session.close()

        with tempfile.TemporaryDirectory() as tmp_dir:
            output_path = Path(tmp_dir) / filename
            if export_format == "csv":
                generate_csv(stores, output_path)
            else:
                generate_kml(stores, output_path)
            content = output_path.read_bytes()
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


def google_maps_link(store: Store) -> str:
    if store.google_maps_url:
        return store.google_maps_url
    query = ", ".join(part for part in [store.name, store.formatted_address] if part)
    params: dict[str, str] = {"api": "1", "query": query}
    if store.place_id:
        params["query_place_id"] = store.place_id
    return f"https://www.google.com/maps/search/?{urlencode(params)}"


def website_domain(url: str | None) -> str | None:
    if not url:
        return None
    parsed = urlparse(url if url.startswith("http") else f"https://{url}")
    if not parsed.hostname:
        return url
    return parsed.hostname.removeprefix("www.")


def _page_url(spec: FilterSpec) -> str:
    params = filter_spec_to_params(spec, include_search=True)
    return f"/?{urlencode(params)}" if params else "/"


def _filter_chips(session: DiscoverySession) -> list[dict[str, str]]:
    spec = session.spec
    names = {
        "categories": {category.slug: category.name for category in session.categories},
        "neighborhoods": {neighborhood.slug: neighborhood.name for neighborhood in session.neighborhoods},
        "regions": {region.slug: region.name for region in session.regions},
    }
    chips: list[dict[str, str]] = []
    for group in ("categories", "neighborhoods", "regions"):
        values: tuple[str, ...] = getattr(spec, group)
        for slug in values:
            remaining = tuple(value for value in values if value != slug)
            chips.append(
                {
                    "group": group,
                    "label": names[group].get(slug, slug),
                    "remove_url": _page_url(replace(spec, **{group: remaining})),
                }
            )
    return chips


def _sort_links(spec: FilterSpec) -> list[dict[str, object]]:
    return [
        {"label": label, "url": _page_url(replace(spec, sort=key)), "active": spec.sort == key}
        for key, label in SORT_LABELS.items()
    ]


def _hover_commands(session: DiscoverySession, recorder: MapCommandRecorder) -> dict[str, dict[str, list]]:
    """Marker restyles the page replays when a visible store's row or pin is hovered."""
    commands: dict[str, dict[str, list]] = {}
    for store in session.visible_stores:
        session.hover_store(store.id)
        enter = recorder.drain()
        session.hover_store(None)
        leave = recorder.drain()
        if enter:
            commands[store.id] = {"enter": enter, "leave": leave}
    return commands


def _json_script_literal(value: object) -> str:
    return json.dumps(value).replace("</", "<\\/")


_settings = load_settings(BASE_DIR)
app = create_app(repository=build_repository(_settings), settings=_settings)
