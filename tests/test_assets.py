"""Asset discovery and type detection tests."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from conftest import image_bytes, write_image
from tagsync.assets import AssetScanner, ContentTypeResolver, HashComputer, image_dimensions


def test_scan_accounted_normalizes_names_and_skips_directories(asset_dir: Path) -> None:
    (asset_dir / "Mr. Smith.jpg").write_bytes(b"x")
    (asset_dir / "Outdoor.webm").write_bytes(b"x")
    (asset_dir / "alt").mkdir()

    accounted = AssetScanner(asset_dir).scan_accounted()

    assert accounted == {"Mr_Smith.jpg", "Outdoor.webm"}


def test_scan_accounted_of_missing_directory_is_empty(tmp_path: Path) -> None:
    assert AssetScanner(tmp_path / "missing").scan_accounted() == set()


def test_scan_alternates_strips_duplicate_markers(asset_dir: Path) -> None:
    alt_dir = asset_dir / "alt"
    alt_dir.mkdir()
    (alt_dir / "Blonde (2).jpg").write_bytes(b"x")
    (alt_dir / "Outdoor.png").write_bytes(b"x")
    (alt_dir / "Indoor").write_bytes(b"x")

    assert AssetScanner(asset_dir).scan_alternates() == {"Blonde", "Outdoor", "Indoor"}


def test_scan_alternates_without_directory_is_empty(asset_dir: Path) -> None:
    assert AssetScanner(asset_dir).scan_alternates() == set()


def test_probe_orders_matches_by_priority(asset_dir: Path) -> None:
    for name in ("Blonde.png", "Blonde.jpg", "Blonde.mp4", "Blonde.webm"):
        (asset_dir / name).write_bytes(b"x")

    probe = AssetScanner(asset_dir).probe("Blonde")

    assert [asset.extension for asset in probe.images] == ["jpg", "png"]
    assert [asset.extension for asset in probe.videos] == ["webm", "mp4"]
    assert probe.primary is not None and probe.primary.extension == "jpg"
    assert probe.ambiguous


def test_probe_falls_back_to_video(asset_dir: Path) -> None:
    (asset_dir / "Outdoor.webm").write_bytes(b"x")

    probe = AssetScanner(asset_dir).probe("Outdoor")

    assert probe.image is None
    assert probe.primary is not None and probe.primary.category == "video"
    assert not probe.ambiguous


def test_hash_computer_matches_md5(tmp_path: Path) -> None:
    path = tmp_path / "blob"
    path.write_bytes(b"tag image bytes")

    assert HashComputer(chunk_size=4).compute(path) == hashlib.md5(b"tag image bytes").hexdigest()


def test_resolver_prefers_declared_media_type(tmp_path: Path) -> None:
    path = tmp_path / "Blonde"
    path.write_bytes(b"ignored")
    resolver = ContentTypeResolver()

    assert resolver.resolve(path, "image/webp") == "webp"
    assert resolver.resolve(path, "video/webm; codecs=vp9") == "webm"
    assert resolver.resolve(path, "application/xml") == "svg"


def test_resolver_sniffs_generic_media_types(tmp_path: Path) -> None:
    path = tmp_path / "Blonde"
    path.write_bytes(image_bytes("PNG"))

    assert ContentTypeResolver().resolve(path, "application/octet-stream") == "png"
    assert ContentTypeResolver().resolve(path, None) == "png"


def test_resolver_returns_none_for_empty_files(tmp_path: Path) -> None:
    path = tmp_path / "Blonde"
    path.write_bytes(b"")

    assert ContentTypeResolver().resolve(path, None) is None


def test_finalize_renames_to_extension(tmp_path: Path) -> None:
    path = tmp_path / "Blonde"
    path.write_bytes(b"new")
    (tmp_path / "Blonde.jpg").write_bytes(b"old")

    final = ContentTypeResolver().finalize(path, "jpg")

    assert final == tmp_path / "Blonde.jpg"
    assert final.read_bytes() == b"new"
    assert not path.exists()


def test_image_dimensions(tmp_path: Path) -> None:
    image = write_image(tmp_path / "Blonde.png", "PNG", size=(12, 7))
    svg = tmp_path / "Logo.svg"
    svg.write_text("<svg xmlns='http://www.w3.org/2000/svg'/>", encoding="utf-8")

    assert image_dimensions(image) == {"width": 12, "height": 7}
    assert image_dimensions(svg) is None


@pytest.mark.parametrize(
    ("media_type", "expected"),
    [
        ("image/jpeg", "jpg"),
        ("text/xml; charset=utf-8", "svg"),
        ("image/bmp", None),
        ("image/tiff", None),
        ("text/html", None),
    ],
)
def test_media_types_map_only_onto_probed_extensions(
    media_type: str, expected: Optional[str]
) -> None:
    assert ContentTypeResolver().from_media_type(media_type) == expected


def test_image_dimensions_of_oversized_image_is_none(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    image = write_image(tmp_path / "Big.png", "PNG", size=(20, 20))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 50)

    assert image_dimensions(image) is None
    # libmagic, when present, still recognises the signature.
    assert ContentTypeResolver().sniff(image) in {None, "png"}
