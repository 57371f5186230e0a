"""Overlay window showing the session status line and the displayed photo."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtGui import QPixmap
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QPixmap = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_STATUS_STYLE = (
    "color: white; font-size: 16px; padding: 12px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_ERROR_STYLE = (
    "color: #FF6B6B; font-size: 16px; padding: 12px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)
_PHOTO_MAX_SIZE = 480


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(_PHOTO_MAX_SIZE + 40)

        self._photo = QLabel("")
        self._photo.setAlignment(Qt.AlignCenter)
        self._caption = QLabel("")
        self._caption.setWordWrap(True)
        self._caption.setStyleSheet(_STATUS_STYLE)
        self._status = QLabel("")
        self._status.setWordWrap(True)
        self._status.setStyleSheet(_STATUS_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._photo)
        layout.addWidget(self._caption)
        layout.addWidget(self._status)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _center_top(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40
        self.move(x, y)

    def set_status(self, text: str) -> None:
        self._cancel_hide_timer()
        self._status.setStyleSheet(_STATUS_STYLE)
        self._status.setText(text)
        self._center_top()
        self.show()

    def show_error(self, text: str, hide_after_ms: int = 4000) -> None:
        self._cancel_hide_timer()
        self._status.setStyleSheet(_ERROR_STYLE)
        self._status.setText(f"⚠️ {text}")
        self._center_top()
        self.show()
        self.hide_with_delay(hide_after_ms)

    def show_photo(self, path: str, caption: str) -> None:
        """Display a local photo with its file name and context underneath."""
        pixmap = QPixmap(path)
        if not pixmap.isNull():
            pixmap = pixmap.scaled(
                _PHOTO_MAX_SIZE, _PHOTO_MAX_SIZE, Qt.KeepAspectRatio, Qt.SmoothTransformation
            )
        self._photo.setPixmap(pixmap)
        self._caption.setText(caption)
        self._caption.setVisible(bool(caption))
        self._center_top()
        self.show()

    def clear_photo(self) -> None:
        self._photo.clear()
        self._caption.setText("")
        self._caption.setVisible(False)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
