"""Data models produced by the reconciliation engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SyncAction(str, Enum):
    """Network decision taken for a tag before any request is made."""

    DOWNLOAD = "download"
    SEED = "seed"
    SKIP = "skip"
    REVALIDATE = "revalidate"


class TagOutcome(str, Enum):
    """Terminal state of a tag after one run."""

    SKIPPED_DEFAULT = "skipped_default"
    SEEDED = "seeded"
    CACHE_HIT = "cache_hit"
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    FAILED = "failed"
    COLLISION = "collision"


class InventoryEntry(BaseModel):
    """In-memory record of the local assets representing one tag.

    Attributes:
        image: Path of the image asset, if any.
        video: Path of the video asset, if any.
        ignore: Whether the tag is excluded from active use.
        alt: Whether a curated alternate asset exists.
        dimensions: Pixel size of the image asset when it is a raster image.
        aliases: Tag aliases copied from the catalog.
        stash_id: First external identifier of the tag.
    """

    image: Optional[Path] = None
    video: Optional[Path] = None
    ignore: bool = False
    alt: bool = False
    dimensions: Optional[Dict[str, int]] = None
    aliases: List[str] = Field(default_factory=list)
    stash_id: Optional[str] = None

    def to_export(self) -> dict[str, Any]:
        """Return the exported form with bare filenames only."""
        return {
            "img": self.image.name if self.image else None,
            "vid": self.video.name if self.video else None,
            "ignore": self.ignore,
            "alt": self.alt,
            "imgDimensions": dict(self.dimensions) if self.dimensions else None,
            "aliases": list(self.aliases),
            "stashID": self.stash_id,
        }


class TagResult(BaseModel):
    """Per-tag trace of the decision and its outcome."""

    name: str
    normalized: Optional[str] = None
    action: Optional[SyncAction] = None
    outcome: TagOutcome
    message: Optional[str] = None


class SyncReport(BaseModel):
    """Aggregated result of one synchronization run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[TagResult] = Field(default_factory=list)
    inventory: Dict[str, InventoryEntry] = Field(default_factory=dict)
    orphans: List[str] = Field(default_factory=list)
    missing_external_ids: List[str] = Field(default_factory=list)
    changed: Optional[List[str]] = None
    export_path: Optional[Path] = None

    def counts(self) -> dict[str, int]:
        """Return the number of tags per outcome plus the total."""
        counts = {outcome.value: 0 for outcome in TagOutcome}
        for result in self.results:
            counts[result.outcome.value] += 1
        counts["processed"] = len(self.results)
        return counts

    @property
    def errors(self) -> list[str]:
        return [
            f"{result.name}: {result.message}"
            for result in self.results
            if result.outcome in {TagOutcome.FAILED, TagOutcome.COLLISION}
        ]

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-ready summary of the run."""
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "counts": self.counts(),
            "errors": self.errors,
            "orphans": list(self.orphans),
            "missing_external_ids": list(self.missing_external_ids),
            "changed": list(self.changed) if self.changed is not None else None,
            "export_path": str(self.export_path) if self.export_path else None,
        }


__all__ = ["InventoryEntry", "SyncAction", "SyncReport", "TagOutcome", "TagResult"]
