"""Cache persistence helpers for the tagsync engine."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import StateError
from .models import EPOCH, SyncState, ValidatorCache

VALIDATOR_CACHE_FILENAME = "etags.json"
SYNC_STATE_FILENAME = "sync-state.json"
TAG_SNAPSHOT_FILENAME = "tags.json"
EXPORT_FILENAME = "tags-export.json"
LOG_FILENAME = "tagsync.log"


def write_json_atomic(path: Path, payload: Any, *, indent: int | None = 2) -> None:
    """Serialize payload to path through a temporary file and an atomic rename.

    Args:
        path: Destination file.
        payload: JSON-serializable object.
        indent: Indentation passed to :func:`json.dumps`.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, indent=indent, ensure_ascii=False))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class CacheRepository:
    """Manage the persisted caches that survive between runs.

    All caches live as whole-file JSON documents inside one directory. A missing
    file always yields the default state; unreadable content raises
    :class:`StateError` so callers can decide how loudly to complain.
    """

    def __init__(self, cache_dir: Path) -> None:
        """Initialize the repository.

        Args:
            cache_dir: Directory that stores the cache files.
        """
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        """Return the cache directory."""
        return self._cache_dir

    @property
    def log_path(self) -> Path:
        """Return the run log location inside the cache directory."""
        return self._cache_dir / LOG_FILENAME

    @property
    def default_export_path(self) -> Path:
        """Return the inventory location used when none is configured."""
        return self._cache_dir / EXPORT_FILENAME

    def initialize(self) -> Path:
        """Create the cache directory when missing and return it."""
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        return self._cache_dir

    def load_validators(self) -> ValidatorCache:
        """Load the URL validator map.

        Returns:
            ValidatorCache: Cached tokens, empty when no file exists.

        Raises:
            StateError: If the file is not a JSON object of strings.
        """
        data = self._read(VALIDATOR_CACHE_FILENAME)
        if data is None:
            return ValidatorCache()
        if not isinstance(data, dict):
            raise StateError(f"{VALIDATOR_CACHE_FILENAME} must contain a JSON object")
        try:
            return ValidatorCache(entries=data)
        except ValidationError as exc:
            raise StateError(f"Invalid validator cache data: {exc}") from exc

    def save_validators(self, cache: ValidatorCache) -> None:
        """Persist the URL validator map wholesale."""
        write_json_atomic(self._path(VALIDATOR_CACHE_FILENAME), dict(cache.entries))

    def load_sync_state(self) -> SyncState:
        """Load the last-sync timestamp.

        Raises:
            StateError: If stored data cannot be parsed.
        """
        data = self._read(SYNC_STATE_FILENAME)
        if data is None:
            return SyncState()
        try:
            return SyncState.model_validate(data)
        except ValidationError as exc:
            raise StateError(f"Invalid sync state data: {exc}") from exc

    def save_sync_state(self, state: SyncState) -> None:
        """Persist the last-sync timestamp."""
        write_json_atomic(
            self._path(SYNC_STATE_FILENAME), state.model_dump(mode="json", by_alias=True)
        )

    def load_snapshot(self) -> list[dict[str, Any]]:
        """Load the raw tag records captured by the previous catalog query.

        Raises:
            StateError: If the stored snapshot is not a JSON array.
        """
        data = self._read(TAG_SNAPSHOT_FILENAME)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StateError(f"{TAG_SNAPSHOT_FILENAME} must contain a JSON array")
        return [record for record in data if isinstance(record, dict)]

    def save_snapshot(self, records: list[dict[str, Any]]) -> None:
        """Persist the raw tag records of the current catalog query."""
        write_json_atomic(self._path(TAG_SNAPSHOT_FILENAME), records, indent=None)

    def _path(self, filename: str) -> Path:
        return self._cache_dir / filename

    def _read(self, filename: str) -> Any:
        path = self._path(filename)
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StateError(f"Invalid {filename} data: {exc}") from exc


__all__ = [
    "CacheRepository",
    "EPOCH",
    "EXPORT_FILENAME",
    "LOG_FILENAME",
    "StateError",
    "SyncState",
    "SYNC_STATE_FILENAME",
    "TAG_SNAPSHOT_FILENAME",
    "VALIDATOR_CACHE_FILENAME",
    "ValidatorCache",
    "write_json_atomic",
]
