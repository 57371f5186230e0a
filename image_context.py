"""In-memory store of the loaded photos and their context."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from models import ImageInfo

logger = logging.getLogger(__name__)


class ImageContextStore:
    """Photos keyed by file name plus the order they are displayed in.

    Records are mutated in place through the narrow update methods below;
    the ordered list only holds file names.
    """

    def __init__(self) -> None:
        self._records: Dict[str, ImageInfo] = {}
        self._order: List[str] = []
        self.current_index = 0
        self.biography = ""
        self.context_applied = False
        self.apply_context_message = ""

    def __len__(self) -> int:
        return len(self._order)

    @property
    def images(self) -> List[ImageInfo]:
        return [self._records[name] for name in self._order]

    @property
    def file_names(self) -> List[str]:
        return list(self._order)

    @property
    def current_image(self) -> Optional[ImageInfo]:
        if 0 <= self.current_index < len(self._order):
            return self._records[self._order[self.current_index]]
        return None

    @property
    def pending_reapply(self) -> bool:
        return bool(self._order) and not self.context_applied

    def get(self, file_name: str) -> Optional[ImageInfo]:
        return self._records.get(file_name)

    def load(self, images: Iterable[ImageInfo], biography: str = "") -> None:
        """Replace the whole set; duplicate file names keep the first record."""
        self._records = {}
        self._order = []
        for info in images:
            if info.file_name in self._records:
                logger.warning("Duplicate image %s ignored", info.file_name)
                continue
            self._records[info.file_name] = info
            self._order.append(info.file_name)
        self.biography = biography
        self.current_index = 0
        self.context_applied = False
        self.apply_context_message = ""

    def clear(self) -> None:
        self.load([], "")

    def update_user_context(self, file_name: str, new_context: str) -> bool:
        info = self._records.get(file_name)
        if info is None:
            return False
        info.user_context = new_context
        self.context_applied = False
        self.apply_context_message = (
            f"Context for {file_name} was updated by AI. Apply context to use it in voice chat."
        )
        return True

    def set_ai_context(self, file_name: str, ai_context: str) -> bool:
        info = self._records.get(file_name)
        if info is None:
            return False
        info.ai_context = ai_context
        return True

    def show(self, file_name: str) -> bool:
        """Move ``file_name`` to the front of the display order and show it."""
        if file_name not in self._records:
            return False
        position = self._order.index(file_name)
        if position != 0:
            del self._order[position]
            self._order.insert(0, file_name)
        self.current_index = 0
        return True

    def advance(self) -> Optional[ImageInfo]:
        """Show the next photo, wrapping around; None with fewer than two photos."""
        if len(self._order) <= 1:
            return None
        self.current_index = (self.current_index + 1) % len(self._order)
        return self.current_image

    def mark_applied(self) -> None:
        self.context_applied = True
        self.apply_context_message = ""
