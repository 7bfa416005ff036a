"""Mapping of catalog tag names onto filesystem-safe basenames."""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[ /\\]")
_WIDE_ESCAPE = re.compile(r"%u([0-9A-Fa-f]{4})")
_BYTE_ESCAPE = re.compile(r"%([0-9A-Fa-f]{2})")


def _code_point(match: re.Match[str]) -> str:
    return chr(int(match.group(1), 16))


def normalize_name(raw: str) -> str:
    """Return the filesystem-safe basename for a tag name.

    Legacy names may carry ``%XX`` / ``%uXXXX`` escapes produced by old
    URL-derived naming. Each escape decodes to the character whose code point
    equals the hex value, which reproduces a single-byte Western code page
    (``%E9`` becomes ``é``). This is intentionally not UTF-8 percent-decoding.

    The mapping is deterministic but neither injective nor idempotent.

    Args:
        raw: Tag name as returned by the catalog.

    Returns:
        str: Normalized basename without extension.
    """
    name = raw.strip().replace(".", "").replace(":", "-")
    name = _SEPARATORS.sub("_", name)
    name = _WIDE_ESCAPE.sub(_code_point, name)
    return _BYTE_ESCAPE.sub(_code_point, name)


__all__ = ["normalize_name"]
