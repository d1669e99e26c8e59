from __future__ import annotations

import logging
import math
import sqlite3
import threading
import time

from refinekit.core.errors import SearchError
from refinekit.core.session import SearchRequest, SearchResponse

from .records_repo import RecordsRepo


log = logging.getLogger(__name__)


class LocalSearchService:
    """SearchService backed by the local SQLite index.

    ``latency`` (seconds) simulates a network round trip for the demos; the
    wait ends early when the request is cancelled.
    """

    def __init__(self, repo: RecordsRepo, latency: float = 0.0) -> None:
        self.repo = repo
        self.latency = latency

    def execute(self, request: SearchRequest, cancel: threading.Event) -> SearchResponse:
        start = time.perf_counter()
        if self.latency and cancel.wait(self.latency):
            log.debug("Request for %r cancelled in flight", request.query)
            return SearchResponse(query=request.query, page=request.page)

        try:
            if request.index_name not in self.repo.index_names():
                raise SearchError(f"index {request.index_name!r} does not exist", retryable=False)
            hits, facets, nb_hits = self.repo.search(
                request.index_name,
                request.query,
                request.filters,
                facets=request.facets,
                page=request.page,
                hits_per_page=request.hits_per_page,
            )
        except sqlite3.Error as exc:
            raise SearchError(f"search on {request.index_name!r} failed: {exc}") from exc

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        nb_pages = math.ceil(nb_hits / request.hits_per_page) if request.hits_per_page else 0
        return SearchResponse(
            hits=hits,
            facets=facets,
            nb_hits=nb_hits,
            processing_time_ms=elapsed_ms,
            query=request.query,
            page=request.page,
            nb_pages=nb_pages,
        )
