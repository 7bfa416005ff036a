"""File type detection and hashing utilities."""

from __future__ import annotations

import hashlib
import logging
import mimetypes
import os
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .discovery import IMAGE_EXTENSIONS, VIDEO_EXTENSIONS

try:  # pragma: no cover - optional dependency
    import magic
except ImportError:  # pragma: no cover - executed when libmagic is unavailable
    magic = None

LOGGER = logging.getLogger(__name__)

MEDIA_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/pjpeg": "jpg",
    "image/png": "png",
    "image/apng": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
    "image/svg+xml": "svg",
    "video/webm": "webm",
    "video/mp4": "mp4",
    "video/x-m4v": "m4v",
    "video/quicktime": "mov",
    "application/xml": "xml",
    "text/xml": "xml",
}

# Pillow format names mapped onto the extensions used for tag assets.
_PILLOW_FORMATS: dict[str, str] = {
    "JPEG": "jpg",
    "MPO": "jpg",
    "PNG": "png",
    "WEBP": "webp",
    "GIF": "gif",
    "AVIF": "avif",
}

# Media types that carry no information about the payload.
_GENERIC_TYPES = {"application/octet-stream", "binary/octet-stream", "text/plain", ""}

# One vector format is served with an XML-like signature.
_EXTENSION_OVERRIDES = {"xml": "svg"}

_SNIFF_BYTES = 8192

# Only extensions the asset probe looks for may be written to disk.
SUPPORTED_EXTENSIONS = frozenset(IMAGE_EXTENSIONS + VIDEO_EXTENSIONS)


class HashComputer:
    """Compute content hashes used to seed conditional-fetch validators."""

    def __init__(self, chunk_size: int = 1 << 16) -> None:
        self.chunk_size = chunk_size

    def compute(self, path: Path) -> str:
        """Return the MD5 hex digest of the file contents."""
        digest = hashlib.md5()
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(self.chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()


class ContentTypeResolver:
    """Determine the true extension of downloaded media."""

    def resolve(self, path: Path, declared: Optional[str] = None) -> Optional[str]:
        """Return the extension for a downloaded file.

        The declared media type wins when it maps onto a supported extension;
        otherwise the bytes are sniffed. Generic XML resolves to ``svg``.

        Args:
            path: Downloaded file, typically still extensionless.
            declared: ``Content-Type`` header of the response, if any.

        Returns:
            Optional[str]: One of :data:`SUPPORTED_EXTENSIONS`, or ``None`` when
            the type cannot be determined or would never be found by a probe.
        """
        extension = self.from_media_type(declared)
        if extension is None:
            extension = self.sniff(path)
        return extension

    def from_media_type(self, media_type: Optional[str]) -> Optional[str]:
        """Map a ``Content-Type`` value onto a supported extension."""
        if media_type is None:
            return None
        essence = media_type.split(";", 1)[0].strip().lower()
        if essence in _GENERIC_TYPES:
            return None
        extension = MEDIA_TYPE_EXTENSIONS.get(essence)
        if extension is None:
            guessed = mimetypes.guess_extension(essence, strict=False)
            extension = guessed.lstrip(".") if guessed else None
        if extension is None:
            return None
        extension = _EXTENSION_OVERRIDES.get(extension, extension)
        if extension not in SUPPORTED_EXTENSIONS:
            LOGGER.debug("Ignoring unsupported media type %s (%s)", essence, extension)
            return None
        return extension

    def sniff(self, path: Path) -> Optional[str]:
        """Identify a file from its signature."""
        try:
            with Image.open(path) as img:
                image_format = img.format
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
            image_format = None
        if image_format and image_format in _PILLOW_FORMATS:
            return _PILLOW_FORMATS[image_format]

        if magic is None:
            LOGGER.warning("python-magic is unavailable; cannot sniff %s", path)
            return None
        try:
            with path.open("rb") as handle:
                head = handle.read(_SNIFF_BYTES)
        except OSError as exc:
            LOGGER.error("Unable to read %s for type detection: %s", path, exc)
            return None
        if not head:
            return None
        try:
            media_type = magic.from_buffer(head, mime=True)
        except magic.MagicException as exc:
            LOGGER.error("libmagic failed on %s: %s", path, exc)
            return None
        return self.from_media_type(media_type)

    def finalize(self, path: Path, extension: str) -> Path:
        """Rename ``path`` to ``path.<extension>``, replacing only that exact name."""
        target = path.with_name(f"{path.name}.{extension}")
        os.replace(path, target)
        return target


__all__ = ["ContentTypeResolver", "HashComputer", "MEDIA_TYPE_EXTENSIONS", "SUPPORTED_EXTENSIONS"]
