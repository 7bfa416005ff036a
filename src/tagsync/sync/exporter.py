"""Persistence of the run's inventory and caches."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from tagsync.catalog import Tag
from tagsync.state import CacheRepository, StateError, SyncState, ValidatorCache, write_json_atomic

from .models import InventoryEntry

LOGGER = logging.getLogger(__name__)


class InventoryExporter:
    """Write the inventory export together with the caches it depends on."""

    def __init__(self, repository: CacheRepository, export_path: Path | None = None) -> None:
        self.repository = repository
        self.export_path = export_path or repository.default_export_path

    def export(
        self,
        *,
        inventory: Mapping[str, InventoryEntry],
        validators: ValidatorCache,
        tags: Iterable[Tag],
        synced_at: datetime,
    ) -> Path:
        """Persist caches and the inventory.

        Args:
            inventory: Per-tag entries keyed by tag name.
            validators: Updated validator cache.
            tags: Catalog records of this run, stored as the next snapshot.
            synced_at: Timestamp recorded as the last successful sync.

        Returns:
            Path: Location of the inventory export.
        """
        self.repository.initialize()
        self.repository.save_validators(validators)
        self.repository.save_sync_state(SyncState(last_sync=synced_at))
        self.repository.save_snapshot(
            [tag.model_dump(mode="json", by_alias=True) for tag in tags]
        )
        payload = {name: entry.to_export() for name, entry in inventory.items()}
        write_json_atomic(self.export_path, payload)
        LOGGER.info("Exported %d tag(s) to %s", len(payload), self.export_path)
        return self.export_path


def find_orphans(accounted: Iterable[str], claimed: Iterable[str]) -> list[str]:
    """Return scanned filenames that no tag claimed, sorted."""
    return sorted(set(accounted) - set(claimed))


def find_missing_external_ids(inventory: Mapping[str, InventoryEntry]) -> list[str]:
    """Return active tags without an external identifier, sorted by name."""
    return sorted(
        name for name, entry in inventory.items() if not entry.ignore and entry.stash_id is None
    )


def load_export(path: Path) -> dict[str, dict[str, Any]]:
    """Read an inventory export.

    Raises:
        StateError: If the export is missing or malformed.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise StateError(f"No inventory export found at {path}") from exc
    except json.JSONDecodeError as exc:
        raise StateError(f"Invalid inventory export: {exc}") from exc
    if not isinstance(data, dict):
        raise StateError("Inventory export must contain a JSON object")
    return data


def find_unexported_files(export_path: Path, asset_dir: Path) -> list[str]:
    """Return files in ``asset_dir`` that no exported ``img``/``vid`` references."""
    exported: set[str] = set()
    for entry in load_export(export_path).values():
        if not isinstance(entry, dict):
            continue
        for key in ("img", "vid"):
            value = entry.get(key)
            if value:
                exported.add(value)
    if not asset_dir.is_dir():
        return []
    return sorted(
        entry.name
        for entry in asset_dir.iterdir()
        if entry.is_file() and entry.name not in exported
    )


__all__ = [
    "InventoryExporter",
    "find_missing_external_ids",
    "find_orphans",
    "find_unexported_files",
    "load_export",
]
