"""Global hotkeys for the tray app, based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, Set

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class HotkeyBindings:
    """Map key names such as ``Key.f9`` to actions.

    Each action fires once per physical press; key repeat while the key is
    held is ignored until the key is released.
    """

    def __init__(self) -> None:
        self._actions: Dict[str, Callable[[], None]] = {}
        self._held: Set[str] = set()
        self._listener: Optional[object] = None
        self._lock = threading.Lock()

    @property
    def keys(self) -> list[str]:
        return list(self._actions)

    def bind(self, key_name: str, action: Callable[[], None]) -> None:
        if key_name in self._actions:
            logger.warning("Hotkey %s rebound", key_name)
        self._actions[key_name] = action

    def handle_press(self, key: object) -> None:
        name = str(key)
        action = self._actions.get(name)
        if action is None:
            return
        with self._lock:
            if name in self._held:
                return
            self._held.add(name)
        action()

    def handle_release(self, key: object) -> None:
        with self._lock:
            self._held.discard(str(key))

    def start(self) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        if self._listener is not None:
            return
        self._listener = keyboard.Listener(on_press=self.handle_press, on_release=self.handle_release)
        self._listener.start()
        logger.info("Listening for hotkeys: %s", ", ".join(self._actions))

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        with self._lock:
            self._held.clear()
