"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from tagsync.config import (
    ConfigError,
    ConfigManager,
    TagsyncConfig,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".tagsync" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "tagsync configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, TagsyncConfig)
    assert config.catalog.endpoint == "http://localhost:9999/graphql"


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"catalog": {"endpoint": "http://stash:9999/graphql"}, "server": {"port": 9000}})

    env = {"TAGSYNC__CATALOG__TIMEOUT_SECONDS": "12"}
    cli = {"catalog.timeout_seconds": 5}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.catalog.endpoint == "http://stash:9999/graphql"
    assert config.server.port == 9000
    # CLI overrides take precedence over environment
    assert config.catalog.timeout_seconds == pytest.approx(5)


def test_legacy_environment_names_are_honoured(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    env = {
        "STASH_URL": "http://legacy:9999/graphql",
        "STASH_APIKEY": "secret",
        "TAG_PATH": "/srv/tags",
        "CACHE_PATH": "/srv/cache",
        "DELETE_EXISTING": "true",
    }

    config = manager.load(env_overrides=env)

    assert config.catalog.endpoint == "http://legacy:9999/graphql"
    assert config.catalog.api_key == "secret"
    assert config.storage.asset_dir == "/srv/tags"
    assert config.storage.cache_dir == "/srv/cache"
    assert config.sync.delete_existing is True


def test_prefixed_environment_wins_over_legacy_names(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    env = {
        "TAGSYNC__STORAGE__ASSET_DIR": "/prefixed",
        "TAG_PATH": "/legacy",
    }

    config = manager.load(env_overrides=env)

    assert config.storage.asset_dir == "/prefixed"


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=TagsyncConfig(),
            file_overrides={"catalog": {"endpiont": "http://typo"}},
        )


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(TagsyncConfig())

    assert flat["TAGSYNC__CATALOG__ENDPOINT"] == "http://localhost:9999/graphql"
    assert flat["TAGSYNC__LOGGING__MAX_SIZE_MB"] == "10"
    assert flat["TAGSYNC__CATALOG__API_KEY"] == "null"


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=TagsyncConfig(),
            file_overrides={"schedule": {"daily_at": "25:99"}},
        )
