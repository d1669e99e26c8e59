from __future__ import annotations

import logging
from typing import Callable, Dict

from PySide6 import QtWidgets

from refinekit.config.settings import Settings, resolve_dataset_dirs
from refinekit.core.session import SearchService
from refinekit.index.db import initialize
from refinekit.index.local_service import LocalSearchService
from refinekit.index.records_repo import RecordsRepo
from refinekit.service.watcher import DatasetWatcher, WatcherConfig
from .qt_bridge import QtDispatcher
from .views.getting_started import GettingStartedWindow
from .views.refinement_list_demo import RefinementListDemo


log = logging.getLogger(__name__)

DemoFactory = Callable[[SearchService, Settings], QtWidgets.QWidget]

DEMOS: Dict[str, DemoFactory] = {
    "getting-started": GettingStartedWindow,
    "refinement-list": RefinementListDemo,
}


def run_gui(demo: str = "getting-started") -> None:
    # Basic logging
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    factory = DEMOS.get(demo)
    if factory is None:
        raise ValueError(f"unknown demo {demo!r}; choose from {', '.join(sorted(DEMOS))}")

    # Ensure DB initialized
    initialize()

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    app.setOrganizationName("RefineKit")
    app.setApplicationName("RefineKit")

    settings = Settings.load()
    repo = RecordsRepo()
    watcher = DatasetWatcher(repo, WatcherConfig(roots=resolve_dataset_dirs(settings)))
    # Load datasets before the first search is issued
    watcher.scan()

    service = LocalSearchService(repo, latency=settings.search_latency_ms / 1000.0)
    win = factory(service, settings)
    log.info("Showing %s demo", demo)

    # Reload notifications arrive on the watcher thread
    dispatcher = QtDispatcher(win)

    def refresh(index_name: str) -> None:
        session = getattr(win, "session", None)
        if session is not None and session.index_name == index_name:
            session.search()

    watcher.on_reload(lambda name: dispatcher(lambda: refresh(name)))

    win.resize(900, 640)
    win.show()
    watcher.start_in_thread()

    try:
        app.exec()
    finally:
        watcher.stop()


if __name__ == "__main__":
    run_gui()
