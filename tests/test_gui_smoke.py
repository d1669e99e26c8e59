from __future__ import annotations

import threading
import time
import unittest

from PySide6 import QtWidgets

from refinekit.config.settings import Settings
from refinekit.core.filter_state import GroupOperator
from refinekit.core.session import SearchRequest, SearchResponse
from refinekit.gui.views.getting_started import GettingStartedWindow
from refinekit.gui.views.refinement_list_demo import RefinementListDemo


class DummyService:
    def __init__(self) -> None:
        self.requests: list[SearchRequest] = []

    def execute(self, request: SearchRequest, cancel: threading.Event) -> SearchResponse:
        self.requests.append(request)
        return SearchResponse(
            hits=[{"objectID": "1", "name": "Phone", "brand": "Acme", "category": "phones"}],
            facets={
                "color": {"red": 3, "blue": 1},
                "category": {"phones": 2, "audio": 1},
            },
            nb_hits=1,
            processing_time_ms=1,
            query=request.query,
        )


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        QtWidgets.QApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class DemoWindowsSmokeTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])

    def setUp(self) -> None:
        self.service = DummyService()
        self.settings = Settings(debounce_ms=0)

    def test_refinement_list_demo_selects_and_clears(self) -> None:
        win = RefinementListDemo(self.service, self.settings)
        win.show()
        self.assertTrue(_wait_for(lambda: win.session.last_response is not None))
        self.assertEqual(win.color_list.labels(), ["red (3)", "blue (1)"])
        self.assertEqual(win.stats_label.text(), "1 hits in 1 ms")

        win.color_list._checks["red"].click()
        self.assertEqual(win.filter_state.values("color"), frozenset({"red"}))
        self.assertTrue(_wait_for(lambda: "red" in win.color_list.checked()))
        self.assertIn('"color":"red"', win.search_state_panel.toPlainText())

        win.clear_button.click()
        self.assertTrue(win.filter_state.snapshot().is_empty())
        win.close()
        QtWidgets.QApplication.processEvents()

    def test_getting_started_window_renders_hits(self) -> None:
        win = GettingStartedWindow(self.service, self.settings)
        win.show()
        self.assertTrue(_wait_for(lambda: win.hits_view.row_count() == 1))
        self.assertTrue(_wait_for(lambda: win.windowTitle() == "1 hits in 1 ms"))

        win.search_box.textEdited.emit("pho")
        self.assertTrue(_wait_for(lambda: self.service.requests[-1].query == "pho"))
        self.assertEqual(self.service.requests[-1].facets, ("category",))
        self.assertIs(win.filter_state.operator("category"), GroupOperator.AND)

        win.hits_view.hitActivated.emit({"objectID": "1", "name": "Phone"})
        self.assertEqual(win.statusBar().currentMessage(), "Phone")

        win.show_filters()
        self.assertTrue(win.filter_sheet.isVisible())
        win.close()
        QtWidgets.QApplication.processEvents()


if __name__ == "__main__":
    unittest.main()
