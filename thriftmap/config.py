from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

DEFAULT_API_VERSION = "2024-01-01"
DEFAULT_CITY_SLUG = "new-york"
DEFAULT_DATA_FILE = Path("data") / "stores-export.json"
DEFAULT_CACHE_SECONDS = 300.0


@dataclass(slots=True)
class Settings:
    sanity_project_id: str = ""
    sanity_dataset: str = ""
    sanity_token: str | None = None
    sanity_api_version: str = DEFAULT_API_VERSION
    city_slug: str = DEFAULT_CITY_SLUG
    data_file: Path = DEFAULT_DATA_FILE
    google_maps_js_api_key: str = ""
    cache_seconds: float = DEFAULT_CACHE_SECONDS

    @property
    def uses_sanity(self) -> bool:
        return bool(self.sanity_project_id and self.sanity_dataset)


def read_env_file(env_path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        key, sep, value = raw_line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        values[key] = value.strip().strip('"').strip("'")
    return values


def load_env_file(base_dir: Path, filename: str = ".env") -> dict[str, str]:
    """Copy KEY=VALUE pairs from ``.env`` into ``os.environ``.

    Variables already set in the environment win. A worktree checkout under
    ``.worktrees/`` also falls back to the main checkout's file. Returns the
    pairs that were applied.
    """
    env_paths = [base_dir / filename]
    if base_dir.parent.name == ".worktrees":
        env_paths.append(base_dir.parent.parent / filename)

    applied: dict[str, str] = {}
    for env_path in env_paths:
        if not env_path.is_file():
            continue
        for key, value in read_env_file(env_path).items():
            if key not in os.environ:
                os.environ[key] = value
                applied[key] = value
    return applied


def load_settings(base_dir: Path) -> Settings:
    load_env_file(base_dir)

    data_file = Path(_env("THRIFTMAP_DATA_FILE") or DEFAULT_DATA_FILE)
    if not data_file.is_absolute():
        data_file = base_dir / data_file

    return Settings(
        sanity_project_id=_env("SANITY_PROJECT_ID"),
        sanity_dataset=_env("SANITY_DATASET"),
        sanity_token=_env("SANITY_API_TOKEN") or None,
        sanity_api_version=_env("SANITY_API_VERSION") or DEFAULT_API_VERSION,
        city_slug=_env("THRIFTMAP_CITY_SLUG") or DEFAULT_CITY_SLUG,
        data_file=data_file,
        google_maps_js_api_key=_env("GOOGLE_MAPS_JS_API_KEY") or _env("GOOGLE_MAPS_API_KEY"),
        cache_seconds=_env_float("THRIFTMAP_CACHE_SECONDS", DEFAULT_CACHE_SECONDS),
    )


def _env(key: str) -> str:
    return os.getenv(key, "").strip()


def _env_float(key: str, default: float) -> float:
    raw = _env(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default
