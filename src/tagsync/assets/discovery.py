"""Local asset discovery utilities."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from tagsync.naming import normalize_name

LOGGER = logging.getLogger(__name__)

# Probe order doubles as the priority used when several files match one tag.
IMAGE_EXTENSIONS: tuple[str, ...] = ("jpg", "jpeg", "png", "webp", "gif", "avif", "svg")
VIDEO_EXTENSIONS: tuple[str, ...] = ("webm", "mp4", "m4v", "mov")

ALT_DIRNAME = "alt"

_DUPLICATE_MARKER = re.compile(r" \(\d+\)$")

AssetCategory = Literal["image", "video"]


class PathState(Enum):
    """Result of an existence query against the filesystem."""

    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"


def path_state(path: Path) -> PathState:
    """Classify a path without relying on exceptions for the missing case."""
    if path.is_file():
        return PathState.FILE
    if path.is_dir():
        return PathState.DIRECTORY
    return PathState.MISSING


def category_for_extension(extension: str) -> AssetCategory:
    """Return the asset category for an extension; unknown types count as images."""
    return "video" if extension.lower() in VIDEO_EXTENSIONS else "image"


@dataclass(frozen=True)
class LocalAsset:
    """A media file that represents a tag on disk."""

    path: Path
    extension: str
    category: AssetCategory

    @classmethod
    def from_path(cls, path: Path) -> LocalAsset:
        extension = path.suffix.lstrip(".").lower()
        return cls(path=path, extension=extension, category=category_for_extension(extension))


@dataclass
class AssetProbe:
    """Every candidate file found for one normalized name.

    Attributes:
        images: Image matches in priority order.
        videos: Video matches in priority order.
    """

    images: list[LocalAsset] = field(default_factory=list)
    videos: list[LocalAsset] = field(default_factory=list)

    @property
    def image(self) -> Optional[LocalAsset]:
        return self.images[0] if self.images else None

    @property
    def video(self) -> Optional[LocalAsset]:
        return self.videos[0] if self.videos else None

    @property
    def primary(self) -> Optional[LocalAsset]:
        """Return the asset that stands for the tag, preferring images."""
        return self.image or self.video

    @property
    def ambiguous(self) -> bool:
        return len(self.images) > 1 or len(self.videos) > 1

    def all(self) -> list[LocalAsset]:
        return [*self.images, *self.videos]


class AssetScanner:
    """Enumerate the asset directory and its curated alternates."""

    def __init__(self, asset_dir: Path, *, alt_dirname: str = ALT_DIRNAME) -> None:
        self.asset_dir = asset_dir
        self.alt_dir = asset_dir / alt_dirname

    def scan_accounted(self) -> set[str]:
        """Return the canonical filenames of every file in the asset directory.

        Each stem is passed through :func:`normalize_name` and its extension is
        re-attached, so the result is comparable with names claimed by tags.
        """
        if path_state(self.asset_dir) is not PathState.DIRECTORY:
            return set()

        accounted: set[str] = set()
        for entry in self.asset_dir.iterdir():
            if entry.is_dir():
                continue
            accounted.add(canonical_filename(entry.name))
        return accounted

    def scan_alternates(self) -> set[str]:
        """Return normalized tag names that have a manually curated alternate asset.

        Alternates are named like primary assets, after the normalized tag name,
        optionally followed by a ` (N)` duplicate marker.

        A missing or unreadable alternates directory yields an empty set.
        """
        try:
            entries = list(self.alt_dir.iterdir())
        except OSError as exc:
            LOGGER.debug("No alternates read from %s: %s", self.alt_dir, exc)
            return set()

        names: set[str] = set()
        for entry in entries:
            stem = entry.stem if entry.suffix else entry.name
            names.add(_DUPLICATE_MARKER.sub("", stem))
        return names

    def probe(self, normalized: str) -> AssetProbe:
        """Look up ``<normalized>.<ext>`` for every recognized extension."""
        result = AssetProbe()
        for extension in IMAGE_EXTENSIONS:
            candidate = self.asset_dir / f"{normalized}.{extension}"
            if path_state(candidate) is PathState.FILE:
                result.images.append(LocalAsset(candidate, extension, "image"))
        for extension in VIDEO_EXTENSIONS:
            candidate = self.asset_dir / f"{normalized}.{extension}"
            if path_state(candidate) is PathState.FILE:
                result.videos.append(LocalAsset(candidate, extension, "video"))
        return result


def canonical_filename(filename: str) -> str:
    """Normalize a filename's stem while keeping its extension."""
    path = Path(filename)
    if not path.suffix:
        return normalize_name(filename)
    return f"{normalize_name(path.stem)}{path.suffix}"


__all__ = [
    "ALT_DIRNAME",
    "AssetCategory",
    "AssetProbe",
    "AssetScanner",
    "IMAGE_EXTENSIONS",
    "LocalAsset",
    "PathState",
    "VIDEO_EXTENSIONS",
    "canonical_filename",
    "category_for_extension",
    "path_state",
]
