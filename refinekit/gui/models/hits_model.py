from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from PySide6 import QtCore


class HitsTableModel(QtCore.QAbstractTableModel):
    def __init__(self, columns: Sequence[str] = ("name",), rows: List[Dict[str, Any]] | None = None) -> None:
        super().__init__()
        self.columns = list(columns)
        self._rows: List[Dict[str, Any]] = rows or []

    def set_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        self.beginResetModel()
        self._rows = [dict(r) for r in rows]
        self.endResetModel()

    def rowCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._rows)

    def columnCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        return len(self.columns)

    def data(self, index: QtCore.QModelIndex, role: int = QtCore.Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        row = self._rows[index.row()]
        if role == QtCore.Qt.DisplayRole:
            value = row.get(self.columns[index.column()])
            if isinstance(value, (list, tuple)):
                return ", ".join(str(v) for v in value)
            return "" if value is None else str(value)
        if role == QtCore.Qt.ToolTipRole:
            return row.get("objectID")
        return None

    def headerData(self, section: int, orientation: QtCore.Qt.Orientation, role: int = QtCore.Qt.DisplayRole):  # type: ignore[override]
        if orientation == QtCore.Qt.Horizontal and role == QtCore.Qt.DisplayRole:
            return self.columns[section].replace("_", " ").capitalize()
        return None

    def row(self, row: int) -> Dict[str, Any]:
        return self._rows[row]
