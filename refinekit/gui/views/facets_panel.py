from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

from PySide6 import QtCore, QtWidgets

from refinekit.core.facets import FacetValue
from ..style.colors import LIST_BACKGROUND, title_color


class FacetListView(QtWidgets.QGroupBox):
    """Check box list of facet values; a FacetListController for Qt."""

    def __init__(self, title: str, color: str = "gray") -> None:
        super().__init__(title)
        hex_color = title_color(color).name()
        self.setStyleSheet(
            f"QGroupBox {{ background: {LIST_BACKGROUND}; }} "
            f"QGroupBox::title {{ color: {hex_color}; font-weight: bold; }}"
        )
        self.setLayout(QtWidgets.QVBoxLayout())
        self._checks: Dict[str, QtWidgets.QCheckBox] = {}
        self._on_select: Optional[Callable[[str], None]] = None

    def on_select(self, callback: Callable[[str], None]) -> None:
        self._on_select = callback

    def render(self, items: Sequence[FacetValue]) -> None:
        # Clear
        layout = self.layout()
        while layout.count():
            w = layout.takeAt(0).widget()
            if w:
                w.deleteLater()
        self._checks.clear()
        for item in items:
            label_txt = item.value if item.value else "(Unknown)"
            cb = QtWidgets.QCheckBox(f"{label_txt} ({item.count})")
            cb.setProperty("facet_value", item.value)
            cb.setChecked(item.is_selected)
            # clicked only fires for user interaction, not for setChecked
            cb.clicked.connect(lambda _checked=False, value=item.value: self._emit(value))
            layout.addWidget(cb)
            self._checks[item.value] = cb
        layout.addStretch(1)

    def checked(self) -> list[str]:
        return [k for k, cb in self._checks.items() if cb.isChecked()]

    def labels(self) -> list[str]:
        return [cb.text() for cb in self._checks.values()]

    def _emit(self, value: str) -> None:
        if self._on_select is not None:
            self._on_select(value)


class FilterSheet(QtWidgets.QDialog):
    """Modal sheet presenting one facet list with a Done button."""

    def __init__(self, title: str, facet_list: FacetListView, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle(title)
        layout = QtWidgets.QVBoxLayout(self)
        scroll = QtWidgets.QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(facet_list)
        layout.addWidget(scroll, 1)
        done = QtWidgets.QPushButton("Done")
        done.clicked.connect(self.accept)
        layout.addWidget(done, 0, QtCore.Qt.AlignRight)
