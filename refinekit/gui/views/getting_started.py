from __future__ import annotations

from PySide6 import QtGui, QtWidgets

from refinekit.config.settings import Settings
from refinekit.core.facets import FacetListInteractor, FacetListPresenter, SelectionMode
from refinekit.core.filter_state import FilterState, GroupOperator
from refinekit.core.interactors import HitsInteractor, QueryInputInteractor, StatsInteractor
from refinekit.core.session import SearchService
from ..qt_bridge import qt_session
from .facets_panel import FacetListView, FilterSheet
from .results_view import HitsView
from .text_views import ClearFiltersButton, SearchBox, WindowTitleController


class GettingStartedWindow(QtWidgets.QMainWindow):
    """Search box, hits, stats in the title and a category refinement sheet."""

    INDEX_NAME = "bestbuy"
    ATTRIBUTE = "category"

    def __init__(self, service: SearchService, settings: Settings | None = None, index_name: str | None = None) -> None:
        super().__init__()
        self.settings = settings or Settings()
        self.filter_state = FilterState()
        self.session = qt_session(service, index_name or self.INDEX_NAME, self.settings, self, self.filter_state)

        self.query_input_interactor = QueryInputInteractor()
        self.hits_interactor = HitsInteractor()
        self.stats_interactor = StatsInteractor()
        self.category_interactor = FacetListInteractor(
            SelectionMode.MULTIPLE,
            presenter=FacetListPresenter(sort_by=("selected_first", "count", "alphabetical")),
        )

        self.search_box = SearchBox("Search products…")
        self.hits_view = HitsView(columns=("name", "brand", "category"))
        self.category_list = FacetListView("Category", color="blue")
        self.filter_sheet = FilterSheet("Category", self.category_list, self)
        self.clear_button = ClearFiltersButton()

        self._setup_ui()
        self._connect()

    def _connect(self) -> None:
        self.query_input_interactor.connect_session(self.session)
        self.query_input_interactor.connect_controller(self.search_box)

        self.hits_interactor.connect_session(self.session)
        self.hits_interactor.connect_controller(self.hits_view)
        self.hits_view.hitActivated.connect(self._on_hit_activated)

        self.stats_interactor.connect_session(self.session)
        self.stats_interactor.connect_controller(WindowTitleController(self))

        self.category_interactor.connect_session(self.session, self.ATTRIBUTE)
        self.category_interactor.connect_filter_state(self.filter_state, self.ATTRIBUTE, GroupOperator.AND)
        self.category_interactor.connect_controller(self.category_list)

        self.session.register_clear_action(self.clear_button)
        self.session.add_error_listener(lambda err: self.statusBar().showMessage(f"Search failed: {err}", 5000))

        self.session.search()

    def _setup_ui(self) -> None:
        self.setWindowTitle("Getting started")
        toolbar = QtWidgets.QToolBar()
        toolbar.setMovable(False)
        self.addToolBar(toolbar)
        toolbar.addWidget(self.search_box)
        toolbar.addSeparator()
        self.filters_btn = QtWidgets.QToolButton()
        self.filters_btn.setText("Category")
        self.filters_btn.clicked.connect(self.show_filters)
        toolbar.addWidget(self.filters_btn)
        toolbar.addWidget(self.clear_button)

        self.setCentralWidget(self.hits_view)
        self.filter_sheet.resize(320, 420)

    def show_filters(self) -> None:
        self.filter_sheet.show()
        self.filter_sheet.raise_()

    def _on_hit_activated(self, hit: dict) -> None:
        self.statusBar().showMessage(str(hit.get("name") or hit.get("objectID", "")), 5000)

    def showEvent(self, event: QtGui.QShowEvent) -> None:  # type: ignore[override]
        super().showEvent(event)
        self.search_box.setFocus()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.filter_sheet.close()
        self.session.close()
        super().closeEvent(event)
