"""Shared fixtures: an in-memory stand-in for the catalog server and media host."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Union

import pytest
import requests
from PIL import Image

from tagsync.config.models import StorageSettings, SyncOptions, TagsyncConfig
from tagsync.sync import SyncEngine


class FakeResponse:
    """Minimal response object covering what the client and fetcher use."""

    def __init__(
        self,
        status_code: int = 200,
        *,
        content: bytes = b"",
        headers: Optional[dict[str, str]] = None,
        json_data: Any = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self._json = json_data

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        pass

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


MediaHandler = Union[FakeResponse, Exception, Callable[[dict[str, str]], FakeResponse]]


class FakeSession:
    """Record requests and answer them from canned catalog and media data."""

    def __init__(self) -> None:
        self.tags: list[dict[str, Any]] = []
        self.changed: list[dict[str, Any]] = []
        self.catalog_error: Optional[Exception] = None
        self.media: dict[str, MediaHandler] = {}
        self.posts: list[dict[str, Any]] = []
        self.gets: list[tuple[str, dict[str, str]]] = []

    def post(self, url: str, json: Any = None, headers: Any = None, **_: Any) -> FakeResponse:
        self.posts.append({"url": url, "json": json, "headers": dict(headers or {})})
        if self.catalog_error is not None:
            raise self.catalog_error
        tag_filter = (json or {}).get("variables", {}).get("tag_filter")
        tags = self.changed if tag_filter else self.tags
        return FakeResponse(json_data={"data": {"findTags": {"tags": tags}}})

    def get(self, url: str, headers: Any = None, **_: Any) -> FakeResponse:
        sent = dict(headers or {})
        self.gets.append((url, sent))
        handler = self.media[url]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(sent)
        return handler

    def close(self) -> None:
        pass


def tag_record(
    name: str,
    url: str,
    *,
    tag_id: str = "1",
    aliases: Optional[list[str]] = None,
    ignore_auto_tag: bool = False,
    stash_id: Optional[str] = "ext-1",
) -> dict[str, Any]:
    """Return a catalog record shaped like the GraphQL response."""
    return {
        "id": tag_id,
        "name": name,
        "aliases": aliases or [],
        "image_path": url,
        "ignore_auto_tag": ignore_auto_tag,
        "stash_ids": [{"endpoint": "https://db.example/graphql", "stash_id": stash_id}]
        if stash_id
        else [],
    }


def image_bytes(fmt: str = "JPEG", size: tuple[int, int] = (8, 6)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color="blue").save(buffer, format=fmt)
    return buffer.getvalue()


def write_image(path: Path, fmt: str = "JPEG", size: tuple[int, int] = (8, 6)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(image_bytes(fmt, size))
    return path


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def asset_dir(tmp_path: Path) -> Path:
    path = tmp_path / "tags"
    path.mkdir()
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def make_engine(
    session: FakeSession, asset_dir: Path, cache_dir: Path
) -> Callable[..., SyncEngine]:
    """Return a factory building engines against the fake session."""

    def _factory(**sync_options: Any) -> SyncEngine:
        config = TagsyncConfig(
            storage=StorageSettings(asset_dir=str(asset_dir), cache_dir=str(cache_dir)),
            sync=SyncOptions(**sync_options),
        )
        return SyncEngine.from_config(config, session=session)  # type: ignore[arg-type]

    return _factory
