from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path

from refinekit.core.errors import SearchError
from refinekit.core.filter_state import FilterState, GroupOperator
from refinekit.core.session import SearchRequest
from refinekit.index.db import initialize
from refinekit.index.local_service import LocalSearchService
from refinekit.index.records_repo import RecordsRepo, facet_values_of


RECORDS = [
    {"objectID": "1", "name": "Red scarf", "color": "red", "category": "accessories", "tags": ["wool", "winter"]},
    {"objectID": "2", "name": "Blue jacket", "color": "blue", "category": "outerwear", "tags": ["winter"]},
    {"objectID": "3", "name": "Red belt", "color": "red", "category": "accessories"},
    {"objectID": "4", "name": "Green coat", "color": "green", "category": "outerwear"},
    {"objectID": "5", "name": "Blue shirt", "color": "blue", "category": "shirts"},
]


class RecordsRepoTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)
        self.db_path = self.root / "test.db"
        initialize(self.db_path)
        self.repo = RecordsRepo(db_path=self.db_path)
        self.repo.replace_index("clothes", RECORDS)

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def _search(self, query: str = "", state: FilterState | None = None, **kwargs):
        snapshot = state.snapshot() if state is not None else None
        return self.repo.search("clothes", query, snapshot, facets=("color", "category"), **kwargs)

    def test_text_search_ranks_title_matches(self) -> None:
        hits, _, nb_hits = self._search("red")
        self.assertEqual(nb_hits, 2)
        self.assertEqual([h["objectID"] for h in hits], ["1", "3"])
        hits, _, _ = self._search("winter")
        self.assertEqual({h["objectID"] for h in hits}, {"1", "2"})

    def test_or_group_filters_and_disjunctive_counts(self) -> None:
        state = FilterState()
        state.add("color", "red")
        state.add("color", "green")
        hits, facets, nb_hits = self._search(state=state)

        self.assertEqual(nb_hits, 3)
        self.assertEqual({h["objectID"] for h in hits}, {"1", "3", "4"})
        # The color facet ignores its own group
        self.assertEqual(facets["color"], {"blue": 2, "red": 2, "green": 1})
        self.assertEqual(facets["category"], {"accessories": 2, "outerwear": 1})

    def test_and_group_requires_every_value(self) -> None:
        state = FilterState()
        state.set_group("tags", GroupOperator.AND)
        state.add("tags", "wool")
        state.add("tags", "winter")
        hits, _, nb_hits = self.repo.search("clothes", "", state.snapshot())
        self.assertEqual(nb_hits, 1)
        self.assertEqual(hits[0]["objectID"], "1")

    def test_and_group_counts_follow_filtered_hits(self) -> None:
        state = FilterState()
        state.set_group("tags", GroupOperator.AND)
        state.add("tags", "wool")
        _, facets, _ = self.repo.search("clothes", "", state.snapshot(), facets=("tags",))
        self.assertEqual(facets["tags"], {"winter": 1, "wool": 1})

    def test_like_wildcards_in_query_match_literally(self) -> None:
        self.assertEqual(self._search("%")[2], 0)
        self.assertEqual(self._search("_")[2], 0)
        self.repo.upsert_record("clothes", {"objectID": "6", "name": "100% cotton_tee", "color": "white"}, position=5)
        hits, _, nb_hits = self._search("100%")
        self.assertEqual(nb_hits, 1)
        self.assertEqual(hits[0]["objectID"], "6")
        self.assertEqual(self._search("cotton_tee")[2], 1)

    def test_pagination(self) -> None:
        hits, _, nb_hits = self._search(page=1, hits_per_page=2)
        self.assertEqual(nb_hits, 5)
        self.assertEqual([h["objectID"] for h in hits], ["3", "4"])

    def test_upsert_replaces_facet_values(self) -> None:
        self.repo.upsert_record("clothes", {"objectID": "5", "name": "Blue shirt", "color": "white"}, position=4)
        _, facets, _ = self._search()
        self.assertNotIn("shirts", facets["category"])
        self.assertEqual(facets["color"]["white"], 1)

    def test_index_bookkeeping(self) -> None:
        self.assertEqual(self.repo.index_names(), ["clothes"])
        self.assertEqual(self.repo.count("clothes"), 5)
        self.repo.delete_record("clothes", "1")
        self.assertEqual(self.repo.count("clothes"), 4)
        self.repo.delete_index("clothes")
        self.assertEqual(self.repo.index_names(), [])

    def test_facet_values_inference(self) -> None:
        values = facet_values_of({"objectID": "1", "name": "x", "in_stock": True, "price": 10, "tags": ["a", ""]})
        self.assertEqual(values, {"in_stock": ["true"], "price": ["10"], "tags": ["a"]})


class LocalSearchServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tmpdir.name) / "test.db"
        initialize(db_path)
        self.repo = RecordsRepo(db_path=db_path)
        self.repo.replace_index("clothes", RECORDS)
        self.service = LocalSearchService(self.repo)

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def test_execute_builds_response(self) -> None:
        state = FilterState()
        state.add("category", "outerwear")
        request = SearchRequest("clothes", "", state.snapshot(), facets=("color",), hits_per_page=1)
        response = self.service.execute(request, threading.Event())
        self.assertEqual(response.nb_hits, 2)
        self.assertEqual(response.nb_pages, 2)
        self.assertEqual(len(response.hits), 1)
        self.assertEqual(response.facet_counts("color"), {"blue": 1, "green": 1})
        self.assertGreaterEqual(response.processing_time_ms, 0)

    def test_unknown_index_raises_search_error(self) -> None:
        with self.assertRaises(SearchError) as ctx:
            self.service.execute(SearchRequest("nope"), threading.Event())
        self.assertFalse(ctx.exception.retryable)

    def test_cancelled_during_latency_returns_empty(self) -> None:
        service = LocalSearchService(self.repo, latency=5.0)
        cancel = threading.Event()
        cancel.set()
        response = service.execute(SearchRequest("clothes", "red"), cancel)
        self.assertEqual(response.hits, [])


if __name__ == "__main__":
    unittest.main()
