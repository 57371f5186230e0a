"""Buffer for the model's in-progress spoken turn."""

from __future__ import annotations

from typing import List


class TranscriptionAccumulator:
    def __init__(self) -> None:
        self._parts: List[str] = []

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def append(self, fragment: str) -> None:
        if fragment:
            self._parts.append(fragment)

    def take_and_clear(self) -> str:
        """Return the whole turn and start a new one."""
        text = self.text
        self._parts = []
        return text

    def clear(self) -> None:
        self._parts = []
