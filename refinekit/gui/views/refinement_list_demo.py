from __future__ import annotations

from PySide6 import QtGui, QtWidgets

from refinekit.config.settings import Settings
from refinekit.core.facets import FacetListInteractor, SelectionMode
from refinekit.core.filter_state import FilterState, GroupOperator
from refinekit.core.interactors import SearchStateInteractor, StatsInteractor
from refinekit.core.session import SearchService
from ..qt_bridge import qt_session
from .facets_panel import FacetListView
from .text_views import ClearFiltersButton, SearchStatePanel, StatsLabel


class RefinementListDemo(QtWidgets.QWidget):
    """Two persistent facet lists, multiple and single choice, on one filter state."""

    INDEX_NAME = "mobile_demo_facet_list"

    def __init__(self, service: SearchService, settings: Settings | None = None, index_name: str | None = None) -> None:
        super().__init__()
        self.setWindowTitle("Refinement list")
        self.settings = settings or Settings()
        self.filter_state = FilterState()
        self.session = qt_session(service, index_name or self.INDEX_NAME, self.settings, self, self.filter_state)

        self.color_interactor = FacetListInteractor(SelectionMode.MULTIPLE, persistent_selection=True)
        self.category_interactor = FacetListInteractor(SelectionMode.SINGLE, persistent_selection=True)
        self.search_state_interactor = SearchStateInteractor()
        self.stats_interactor = StatsInteractor()

        self.color_list = FacetListView("Multiple choice", color="red")
        self.category_list = FacetListView("Single choice", color="blue")
        self.search_state_panel = SearchStatePanel()
        self.clear_button = ClearFiltersButton()
        self.stats_label = StatsLabel()
        self.status = QtWidgets.QLabel("")

        self._setup()
        self._setup_layout()

    def _setup(self) -> None:
        self.color_interactor.connect_session(self.session, "color")
        self.color_interactor.connect_controller(self.color_list)
        self.color_interactor.connect_filter_state(self.filter_state, "color", GroupOperator.OR)

        self.category_interactor.connect_session(self.session, "category")
        self.category_interactor.connect_controller(self.category_list)
        self.category_interactor.connect_filter_state(self.filter_state, "category", GroupOperator.OR)

        self.search_state_interactor.connect_session(self.session)
        self.search_state_interactor.connect_filter_state(self.filter_state)
        self.search_state_interactor.connect_controller(self.search_state_panel)

        self.stats_interactor.connect_session(self.session)
        self.stats_interactor.connect_controller(self.stats_label)

        self.session.register_clear_action(self.clear_button)
        self.session.add_error_listener(lambda err: self.status.setText(f"Search failed: {err}"))
        self.session.add_response_listener(lambda _resp: self.status.setText(""))

        self.session.search()

    def _setup_layout(self) -> None:
        main = QtWidgets.QVBoxLayout(self)
        main.setSpacing(16)
        main.addWidget(self.search_state_panel)

        lists = QtWidgets.QHBoxLayout()
        lists.setSpacing(16)
        lists.addWidget(self.color_list, 1)
        lists.addWidget(self.category_list, 1)
        main.addLayout(lists, 1)

        footer = QtWidgets.QHBoxLayout()
        footer.addWidget(self.stats_label)
        footer.addWidget(self.status, 1)
        footer.addWidget(self.clear_button)
        main.addLayout(footer)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.session.close()
        super().closeEvent(event)
