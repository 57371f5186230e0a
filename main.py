"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Coroutine

from config import JsonConfigStore
from errors import ImageSetError
from gemini_client import GeminiAuxiliaryModel, GeminiLiveTransport
from hotkey import HotkeyBindings
from image_analysis import answer_question, describe_images
from image_context import ImageContextStore
from image_loader import load_image_set
from models import SessionState
from overlay import OverlayWindow
from playback import PlaybackScheduler, SoundDeviceSink
from recorder import SoundDeviceCapture
from session_controller import VoiceSession

try:
    from PySide6.QtCore import QObject, QSize, QUrl, Signal
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import (
        QApplication,
        QFileDialog,
        QInputDialog,
        QMenu,
        QMessageBox,
        QSystemTrayIcon,
    )
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"       # grey
ICON_OPEN = "#44AA44"       # green
ICON_RECORDING = "#FF4444"  # red
ICON_ERROR = "#FF8800"      # orange


class UIBridge(QObject):
    status_signal = Signal(str)
    error_signal = Signal(str)
    state_signal = Signal(str, str)  # from_state, to_state
    answer_signal = Signal(str)
    photo_signal = Signal()


class LoopThread:
    """Run the session's asyncio loop beside the Qt main thread."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="voice-session-loop", daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> None:
        self._thread.start()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(self._log_failure)
        return future

    def stop(self, timeout: float = 2.0) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=timeout)

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.answer_signal.connect(self._on_answer_ui)
        self.ui.photo_signal.connect(self._refresh_photo)

        api_key = self.config_store.get_api_key()
        self.loop_thread = LoopThread()
        self.store = ImageContextStore()
        self.sink = SoundDeviceSink()
        self.assistant = GeminiAuxiliaryModel(api_key=api_key, model=self.config_store.get_assistant_model())
        self.controller = VoiceSession(
            transport=GeminiLiveTransport(
                api_key=api_key,
                model=self.config_store.get_live_model(),
                voice=self.config_store.get_voice(),
            ),
            store=self.store,
            capture=SoundDeviceCapture(),
            scheduler=PlaybackScheduler(self.sink),
            auxiliary_model=self.assistant,
            outbound_maxsize=self.config_store.get_outbound_queue_size(),
            on_state_change=self._on_state_change,
            on_status=self._on_status,
            on_error=self._on_error,
        )
        self.hotkeys = HotkeyBindings()
        self.hotkeys.bind(self.config_store.get_hotkey(), self._toggle_recording)
        self.hotkeys.bind(self.config_store.get_next_photo_hotkey(), self._next_photo)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Photo Voice — Connecting")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        entries = [
            ("Load Photos...", self._load_photos),
            ("Start/Stop Recording", self._toggle_recording),
            ("Next Photo", self._next_photo),
            ("Apply Context", self._apply_context),
            ("Clear Photos", self._clear_photos),
            ("Reset Session", self._reset),
            ("Ask About Photos...", self._ask_question),
        ]
        for title, handler in entries:
            action = QAction(title, menu)
            action.triggered.connect(handler)
            menu.addAction(action)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    # ------------------------------------------------------------------
    # Menu handlers (UI thread, work is submitted to the session loop)
    # ------------------------------------------------------------------

    def _toggle_recording(self) -> None:
        if self.controller.is_recording:
            self.loop_thread.submit(self.controller.stop_recording())
        else:
            self.loop_thread.submit(self.controller.start_recording())

    def _next_photo(self) -> None:
        future = self.loop_thread.submit(self.controller.change_displayed_image())
        future.add_done_callback(lambda _: self.ui.photo_signal.emit())

    def _apply_context(self) -> None:
        self.loop_thread.submit(self.controller.apply_context())

    def _clear_photos(self) -> None:
        self.overlay.clear_photo()
        self.loop_thread.submit(self.controller.clear_images())

    def _reset(self) -> None:
        self.loop_thread.submit(self.controller.reset())

    def _load_photos(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(
            None, "Select photos and an optional context.json", str(Path.home()),
            "Photos and context (*.png *.jpg *.jpeg *.gif *.webp *.json);;All files (*)",
        )
        if not paths:
            return
        try:
            image_set = load_image_set(paths)
        except (ImageSetError, OSError) as exc:
            self.overlay.show_error(str(exc))
            return
        if image_set.warning:
            self.overlay.show_error(image_set.warning)
        self.loop_thread.submit(self._load_and_describe(image_set.images, image_set.biography))

    async def _load_and_describe(self, images: list, biography: str) -> None:
        await self.controller.load_images(images, biography)
        await describe_images(self.store, self.assistant)
        self.ui.status_signal.emit("Photo analysis finished.")

    def _ask_question(self) -> None:
        question, ok = QInputDialog.getMultiLineText(None, "Ask About Photos", "Question")
        if not ok or not question.strip():
            return
        future = self.loop_thread.submit(answer_question(self.store, self.assistant, question))

        def _done(fut: Future) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self.ui.error_signal.emit(f"Question failed: {exc}")
            else:
                self.ui.answer_signal.emit(fut.result() or "No answer.")

        future.add_done_callback(_done)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "Gemini API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved. Restart app to apply.")

    # ------------------------------------------------------------------
    # Callbacks (called from the session loop → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_status(self, text: str) -> None:
        self.ui.status_signal.emit(text)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{code}: {message}")

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_status_ui(self, text: str) -> None:
        self.overlay.set_status(text)
        self._refresh_photo()
        if self.store.pending_reapply and self.store.apply_context_message:
            self.tray.showMessage("Photo Voice", self.store.apply_context_message)
        if self.controller.is_recording:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
        elif self.controller.state == SessionState.OPEN:
            self.tray.setIcon(_create_icon(ICON_OPEN))

    def _refresh_photo(self) -> None:
        current = self.store.current_image
        if current is None:
            self.overlay.clear_photo()
            return
        path = QUrl(current.url).toLocalFile() or current.url
        caption = current.file_name
        if current.user_context:
            caption = f"{caption}\n{current.user_context}"
        self.overlay.show_photo(path, caption)

    def _on_error_ui(self, msg: str) -> None:
        self.overlay.show_error(msg)

    def _on_answer_ui(self, text: str) -> None:
        QMessageBox.information(None, "Answer", text)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == SessionState.OPEN.value:
            self.tray.setIcon(_create_icon(ICON_OPEN))
            self.tray.setToolTip("Photo Voice — Ready")
        elif to_state == SessionState.CONNECTING.value:
            self.tray.setToolTip("Photo Voice — Connecting")
        elif to_state == SessionState.CLOSED.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Photo Voice — Closed")
        elif to_state == SessionState.ERROR.value:
            self.tray.setIcon(_create_icon(ICON_ERROR))
            self.tray.setToolTip("Photo Voice — Error, use Reset Session")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.loop_thread.start()
        try:
            self.sink.open()
        except Exception as exc:
            self.overlay.show_error(f"Audio output disabled: {exc}")
        self.loop_thread.submit(self.controller.connect())
        try:
            self.hotkeys.start()
        except Exception as exc:
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkeys.stop()
        try:
            self.loop_thread.submit(self.controller.close()).result(timeout=2.0)
        except Exception:
            logger.warning("Session did not close cleanly", exc_info=True)
        self.loop_thread.stop()
        self.sink.close()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
