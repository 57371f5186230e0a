from __future__ import annotations

import json
from pathlib import Path

import pytest

from errors import NO_IMAGES, ImageSetError
from image_loader import load_image_set, read_context_file


def _write_photos(folder: Path, *names: str) -> list[Path]:
    paths = []
    for name in names:
        path = folder / name
        path.write_bytes(b"\xff\xd8" + name.encode())
        paths.append(path)
    return paths


def test_loads_photos_with_context_file(tmp_path: Path) -> None:
    photos = _write_photos(tmp_path, "beach.jpg", "boat.png")
    context = tmp_path / "context.json"
    context.write_text(
        json.dumps(
            {
                "biography": "Grew up by the sea.",
                "photos": [
                    {"fileName": "beach.jpg", "context": "Summer 1985"},
                    {"fileName": "unknown.jpg", "context": "ignored"},
                ],
            }
        ),
        encoding="utf-8",
    )

    result = load_image_set([*photos, context])

    assert result.biography == "Grew up by the sea."
    assert result.warning == ""
    assert [i.file_name for i in result.images] == ["beach.jpg", "boat.png"]
    beach, boat = result.images
    assert beach.mime_type == "image/jpeg"
    assert beach.user_context == "Summer 1985"
    assert beach.ai_context == "loading..."
    assert beach.data == photos[0].read_bytes()
    assert beach.url.startswith("file://")
    assert boat.mime_type == "image/png"
    assert boat.user_context == ""


def test_directory_is_expanded_in_name_order(tmp_path: Path) -> None:
    _write_photos(tmp_path, "c.jpg", "a.jpg", "b.jpg")
    (tmp_path / "notes.txt").write_text("not a photo", encoding="utf-8")

    result = load_image_set([tmp_path])

    assert [i.file_name for i in result.images] == ["a.jpg", "b.jpg", "c.jpg"]


def test_no_images_raises(tmp_path: Path) -> None:
    context = tmp_path / "context.json"
    context.write_text("{}", encoding="utf-8")

    with pytest.raises(ImageSetError) as exc_info:
        load_image_set([context])

    assert exc_info.value.code == NO_IMAGES
    assert str(exc_info.value) == "Error: No image files found."


def test_invalid_context_file_is_a_warning(tmp_path: Path) -> None:
    photos = _write_photos(tmp_path, "a.jpg")
    context = tmp_path / "context.json"
    context.write_text("{broken", encoding="utf-8")

    result = load_image_set([*photos, context])

    assert len(result.images) == 1
    assert result.biography == ""
    assert result.warning.startswith("Warning: Could not parse the context file.")


def test_duplicate_file_names_keep_the_first(tmp_path: Path) -> None:
    first = tmp_path / "one"
    second = tmp_path / "two"
    first.mkdir()
    second.mkdir()
    (first / "a.jpg").write_bytes(b"first")
    (second / "a.jpg").write_bytes(b"second")

    result = load_image_set([first / "a.jpg", second / "a.jpg"])

    assert len(result.images) == 1
    assert result.images[0].data == b"first"


def test_read_context_file_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "context.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        read_context_file(path)


def test_read_context_file_tolerates_missing_fields(tmp_path: Path) -> None:
    path = tmp_path / "context.json"
    path.write_text(json.dumps({"photos": [{"context": "no name"}, "junk"]}), encoding="utf-8")

    assert read_context_file(path) == ("", {})
