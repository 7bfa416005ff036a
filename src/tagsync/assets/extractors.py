"""Metadata extraction for tag assets."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

LOGGER = logging.getLogger(__name__)


def image_dimensions(path: Path) -> Optional[dict[str, int]]:
    """Return the pixel size of a raster image.

    Vector images and files Pillow cannot identify yield ``None``.
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        LOGGER.debug("No dimensions for %s: %s", path, exc)
        return None
    return {"width": width, "height": height}


__all__ = ["image_dimensions"]
