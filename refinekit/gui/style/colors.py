from __future__ import annotations

from PySide6 import QtGui


# Accent colors for facet list titles
TITLE_COLORS: dict[str, str] = {
    "red": "#ff5a54",
    "blue": "#5aa6ff",
    "green": "#2bd57b",
    "orange": "#ff8a1c",
    "purple": "#c35aff",
    "gray": "#9aa0a6",
}

LIST_BACKGROUND = "#f7f8fa"


def title_color(name: str) -> QtGui.QColor:
    return QtGui.QColor(TITLE_COLORS.get(name, name if name.startswith("#") else TITLE_COLORS["gray"]))
