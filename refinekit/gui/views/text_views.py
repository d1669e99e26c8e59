from __future__ import annotations

from typing import Callable, Optional

from PySide6 import QtCore, QtWidgets


class SearchBox(QtWidgets.QLineEdit):
    def __init__(self, placeholder: str = "Search…") -> None:
        super().__init__()
        self.setPlaceholderText(placeholder)
        self.setClearButtonEnabled(True)
        self._on_text_changed: Optional[Callable[[str], None]] = None
        # textEdited ignores programmatic setText
        self.textEdited.connect(self._emit)

    def on_text_changed(self, callback: Callable[[str], None]) -> None:
        self._on_text_changed = callback

    def render_text(self, text: str | None) -> None:
        self.setText(text or "")

    def _emit(self, text: str) -> None:
        if self._on_text_changed is not None:
            self._on_text_changed(text)


class StatsLabel(QtWidgets.QLabel):
    def __init__(self) -> None:
        super().__init__("")
        self.setStyleSheet("color:#9aa0a6; padding:4px;")

    def render_text(self, text: str | None) -> None:
        self.setText(text or "")


class WindowTitleController:
    """Shows a text in a window's title bar."""

    def __init__(self, window: QtWidgets.QWidget, fallback: str | None = None) -> None:
        self.window = window
        self.fallback = fallback if fallback is not None else window.windowTitle()

    def render_text(self, text: str | None) -> None:
        self.window.setWindowTitle(text or self.fallback)


class SearchStatePanel(QtWidgets.QPlainTextEdit):
    def __init__(self) -> None:
        super().__init__()
        self.setReadOnly(True)
        self.setFixedHeight(150)

    def render_text(self, text: str | None) -> None:
        self.setPlainText(text or "")


class ClearFiltersButton(QtWidgets.QPushButton):
    def __init__(self, text: str = "Clear filters") -> None:
        super().__init__(text)
        self._callbacks: list[Callable[[], None]] = []
        self.clicked.connect(self._emit)

    def on_trigger(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    @QtCore.Slot()
    def _emit(self) -> None:
        for callback in list(self._callbacks):
            callback()
