from pathlib import Path

import pytest

from thriftmap.config import (
    DEFAULT_API_VERSION,
    DEFAULT_CACHE_SECONDS,
    load_env_file,
    load_settings,
    read_env_file,
)

ENV_KEYS = [
    "SANITY_PROJECT_ID",
    "SANITY_DATASET",
    "SANITY_API_TOKEN",
    "SANITY_API_VERSION",
    "THRIFTMAP_CITY_SLUG",
    "THRIFTMAP_DATA_FILE",
    "GOOGLE_MAPS_JS_API_KEY",
    "GOOGLE_MAPS_API_KEY",
    "THRIFTMAP_CACHE_SECONDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so monkeypatch also undoes values written by load_env_file.
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_defaults_use_local_export(tmp_path: Path) -> None:
    settings = load_settings(tmp_path)

    assert settings.uses_sanity is False
    assert settings.sanity_api_version == DEFAULT_API_VERSION
    assert settings.city_slug == "new-york"
    assert settings.data_file == tmp_path / "data" / "stores-export.json"
    assert settings.google_maps_js_api_key == ""
    assert settings.cache_seconds == DEFAULT_CACHE_SECONDS


def test_env_file_configures_sanity(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "# content",
                "SANITY_PROJECT_ID=abc123",
                'SANITY_DATASET="production"',
                "SANITY_API_TOKEN='secret'",
                "not a pair",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(tmp_path)

    assert settings.uses_sanity is True
    assert settings.sanity_project_id == "abc123"
    assert settings.sanity_dataset == "production"
    assert settings.sanity_token == "secret"


def test_existing_environment_wins_over_env_file(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / ".env").write_text("THRIFTMAP_CITY_SLUG=boston\n", encoding="utf-8")
    monkeypatch.setenv("THRIFTMAP_CITY_SLUG", "new-york")

    assert load_env_file(tmp_path) == {}
    assert load_settings(tmp_path).city_slug == "new-york"


def test_read_env_file_skips_comments_and_malformed_lines(tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text("# KEY=ignored\nNO_EQUALS\n=no-key\nURL=https://x.test/?a=b\n", encoding="utf-8")

    assert read_env_file(env_path) == {"URL": "https://x.test/?a=b"}


def test_maps_key_falls_back_to_server_key(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "server-key")

    assert load_settings(tmp_path).google_maps_js_api_key == "server-key"

    monkeypatch.setenv("GOOGLE_MAPS_JS_API_KEY", "browser-key")

    assert load_settings(tmp_path).google_maps_js_api_key == "browser-key"


def test_absolute_data_file_is_kept(tmp_path: Path, monkeypatch) -> None:
    export = tmp_path / "elsewhere" / "export.json"
    monkeypatch.setenv("THRIFTMAP_DATA_FILE", str(export))

    assert load_settings(tmp_path / "app").data_file == export


def test_cache_seconds_reads_env_and_ignores_garbage(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("THRIFTMAP_CACHE_SECONDS", "0")

    assert load_settings(tmp_path).cache_seconds == 0.0

    monkeypatch.setenv("THRIFTMAP_CACHE_SECONDS", "soon")

    assert load_settings(tmp_path).cache_seconds == DEFAULT_CACHE_SECONDS
