"""Load a photo set and its optional ``context.json`` into image records."""

from __future__ import annotations

import json
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from errors import CONTEXT_FILE_INVALID, ERROR_MESSAGES, NO_IMAGES, ImageSetError
from models import ImageInfo

logger = logging.getLogger(__name__)


@dataclass
class ImageSet:
    images: List[ImageInfo] = field(default_factory=list)
    biography: str = ""
    warning: str = ""


def _expand(paths: Iterable[Path]) -> List[Path]:
    files: List[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(p for p in path.iterdir() if p.is_file()))
        elif path.is_file():
            files.append(path)
    return files


def _mime_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or ""


def read_context_file(path: Path) -> tuple[str, Dict[str, str]]:
    """Return the biography and a file name -> context map.

    Raises ``ValueError`` when the file is not a JSON object.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("context file must hold a JSON object")
    biography = str(data.get("biography") or "")
    photos = data.get("photos")
    contexts: Dict[str, str] = {}
    if isinstance(photos, list):
        for entry in photos:
            if isinstance(entry, dict) and entry.get("fileName"):
                contexts.setdefault(str(entry["fileName"]), str(entry.get("context") or ""))
    return biography, contexts


def load_image_set(paths: Iterable[Path | str]) -> ImageSet:
    files = _expand(Path(p) for p in paths)
    json_files = [f for f in files if f.suffix.lower() == ".json" or _mime_type(f) == "application/json"]
    image_files = [f for f in files if _mime_type(f).startswith("image/")]

    if not image_files:
        raise ImageSetError(NO_IMAGES)

    result = ImageSet()
    contexts: Dict[str, str] = {}
    if json_files:
        try:
            result.biography, contexts = read_context_file(json_files[0])
        except (OSError, ValueError) as exc:
            result.warning = f"Warning: {ERROR_MESSAGES[CONTEXT_FILE_INVALID]} Error: {exc}"
            logger.warning("Error parsing %s: %s", json_files[0], exc)

    seen = set()
    for path in image_files:
        if path.name in seen:
            logger.warning("Skipping duplicate file name %s", path)
            continue
        seen.add(path.name)
        result.images.append(
            ImageInfo(
                file_name=path.name,
                mime_type=_mime_type(path),
                data=path.read_bytes(),
                user_context=contexts.get(path.name, ""),
                ai_context="loading...",
                url=path.resolve().as_uri(),
            )
        )
    logger.info("Loaded %d image(s), %d with context", len(result.images), sum(1 for i in result.images if i.user_context))
    return result
