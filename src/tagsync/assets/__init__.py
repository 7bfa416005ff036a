"""Local asset discovery, type detection, and metadata helpers."""

from .detectors import ContentTypeResolver, HashComputer
from .discovery import (
    IMAGE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    AssetProbe,
    AssetScanner,
    LocalAsset,
    PathState,
    path_state,
)
from .extractors import image_dimensions

__all__ = [
    "AssetProbe",
    "AssetScanner",
    "ContentTypeResolver",
    "HashComputer",
    "IMAGE_EXTENSIONS",
    "LocalAsset",
    "PathState",
    "VIDEO_EXTENSIONS",
    "image_dimensions",
    "path_state",
]
