"""CLI tests for the run and validate commands."""

import json
import os
from pathlib import Path
from typing import Any

import pytest
import requests
from click.testing import CliRunner

from conftest import FakeResponse, FakeSession, image_bytes, tag_record
from tagsync.cli import cli


def _env(tmp_path: Path) -> dict[str, Any]:
    env = dict(os.environ)
    env["HOME"] = str(tmp_path)
    env["TAGSYNC__STORAGE__ASSET_DIR"] = str(tmp_path / "tags")
    env["TAGSYNC__STORAGE__CACHE_DIR"] = str(tmp_path / "cache")
    return env


@pytest.fixture
def patched_session(monkeypatch: pytest.MonkeyPatch) -> FakeSession:
    session = FakeSession()
    monkeypatch.setattr(requests, "Session", lambda: session)
    return session


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "tagsync mirrors catalog tag images" in result.output
    for command in ("run", "serve", "validate", "config"):
        assert command in result.output


def test_run_json_reports_counts(tmp_path: Path, patched_session: FakeSession) -> None:
    url = "http://catalog/tag/1/image"
    patched_session.tags = [tag_record("Blonde", url)]
    patched_session.media[url] = FakeResponse(
        content=image_bytes(), headers={"ETag": '"v1"', "Content-Type": "image/jpeg"}
    )

    runner = CliRunner()
    result = runner.invoke(cli, ["run", "--json"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["counts"]["updated"] == 1
    assert payload["counts"]["processed"] == 1
    assert payload["errors"] == []
    assert (tmp_path / "tags" / "Blonde.jpg").is_file()

    export = json.loads((tmp_path / "cache" / "tags-export.json").read_text(encoding="utf-8"))
    assert export["Blonde"]["img"] == "Blonde.jpg"


def test_run_summary_mode_prints_summary_line(
    tmp_path: Path, patched_session: FakeSession
) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "--summary"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    assert "Sync summary for" in result.output
    assert "processed=0" in result.output


def test_run_catalog_failure_emits_json_error(
    tmp_path: Path, patched_session: FakeSession
) -> None:
    patched_session.catalog_error = requests.ConnectionError("refused")

    runner = CliRunner()
    result = runner.invoke(cli, ["run", "--json"], env=_env(tmp_path))

    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "catalog_error"
    assert not (tmp_path / "cache" / "tags-export.json").exists()


def test_validate_lists_extra_files(tmp_path: Path) -> None:
    asset_dir = tmp_path / "tags"
    asset_dir.mkdir()
    (asset_dir / "Blonde.jpg").write_bytes(b"x")
    (asset_dir / "Stray.png").write_bytes(b"x")
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / "tags-export.json").write_text(
        json.dumps({"Blonde": {"img": "Blonde.jpg", "vid": None}}), encoding="utf-8"
    )

    runner = CliRunner()
    result = runner.invoke(cli, ["validate", "--json"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["extra_files"] == ["Stray.png"]


def test_validate_without_export_fails(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["validate", "--json"], env=_env(tmp_path))

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "state_error"
