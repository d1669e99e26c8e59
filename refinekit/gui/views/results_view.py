from __future__ import annotations

from typing import Any, Mapping, Sequence

from PySide6 import QtCore, QtWidgets

from ..models.hits_model import HitsTableModel


class HitsView(QtWidgets.QTableView):
    """Table of hits; a HitsController for Qt."""

    hitActivated = QtCore.Signal(dict)

    def __init__(self, columns: Sequence[str] = ("name",)) -> None:
        super().__init__()
        self.setModel(HitsTableModel(columns))
        self.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectionBehavior.SelectRows)
        self.setSelectionMode(QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        self.setAlternatingRowColors(True)
        self.setShowGrid(False)
        self.setSortingEnabled(False)
        self.verticalHeader().hide()
        self.horizontalHeader().setStretchLastSection(True)
        self.horizontalHeader().setSectionResizeMode(0, QtWidgets.QHeaderView.Stretch)
        self.doubleClicked.connect(self._on_double_clicked)

    def render(self, items: Sequence[Mapping[str, Any]]) -> None:
        model: HitsTableModel = self.model()  # type: ignore[assignment]
        model.set_rows(items)

    def row_count(self) -> int:
        return self.model().rowCount()

    def _on_double_clicked(self, index: QtCore.QModelIndex) -> None:
        model: HitsTableModel = self.model()  # type: ignore[assignment]
        self.hitActivated.emit(model.row(index.row()))
