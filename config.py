"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_HOTKEY = "Key.f9"
DEFAULT_NEXT_PHOTO_HOTKEY = "Key.f10"
DEFAULT_LIVE_MODEL = "gemini-live-2.5-flash-preview"
DEFAULT_ASSISTANT_MODEL = "gemini-2.5-flash"
DEFAULT_VOICE = "Orus"
DEFAULT_OUTBOUND_QUEUE_SIZE = 64


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "photo_voice" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        key = str(data.get("api_key", ""))
        if key:
            return key
        return os.getenv("GEMINI_API_KEY", "") or os.getenv("GOOGLE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_next_photo_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("next_photo_hotkey", DEFAULT_NEXT_PHOTO_HOTKEY))

    def get_live_model(self) -> str:
        data = self._read_all()
        return str(data.get("live_model", DEFAULT_LIVE_MODEL))

    def get_assistant_model(self) -> str:
        data = self._read_all()
        return str(data.get("assistant_model", DEFAULT_ASSISTANT_MODEL))

    def get_voice(self) -> str:
        data = self._read_all()
        return str(data.get("voice", DEFAULT_VOICE))

    def get_outbound_queue_size(self) -> int:
        data = self._read_all()
        try:
            size = int(data.get("outbound_queue_size", DEFAULT_OUTBOUND_QUEUE_SIZE))
        except (TypeError, ValueError):
            return DEFAULT_OUTBOUND_QUEUE_SIZE
        return size if size > 0 else DEFAULT_OUTBOUND_QUEUE_SIZE

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
