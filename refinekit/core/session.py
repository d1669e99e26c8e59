from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from queue import Empty, SimpleQueue
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .adapters import ClearTrigger
from .errors import SearchError
from .filter_state import FilterSnapshot, FilterState
from .observers import SubscriberList, Subscription


log = logging.getLogger(__name__)


Dispatch = Callable[[Callable[[], None]], None]


@dataclass(frozen=True)
class SearchRequest:
    index_name: str
    query: str = ""
    filters: FilterSnapshot = field(default_factory=FilterSnapshot)
    facets: Tuple[str, ...] = ()
    page: int = 0
    hits_per_page: int = 20


@dataclass
class SearchResponse:
    hits: List[Dict[str, Any]] = field(default_factory=list)
    facets: Dict[str, Dict[str, int]] = field(default_factory=dict)
    nb_hits: int = 0
    processing_time_ms: int = 0
    query: str = ""
    page: int = 0
    nb_pages: int = 0

    def facet_counts(self, attribute: str) -> Dict[str, int]:
        return self.facets.get(attribute, {})


class SearchService(Protocol):
    """Executes one request; runs off the owning thread.

    Implementations should return early once ``cancel`` is set and raise
    ``SearchError`` for failures the screen should surface.
    """

    def execute(self, request: SearchRequest, cancel: threading.Event) -> SearchResponse: ...


class SearchScheduler(Protocol):
    def schedule(self, fn: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


def _call_now(fn: Callable[[], None]) -> None:
    fn()


class OwnerThreadDispatcher:
    """Runs callables on the thread that created it.

    Calls made on that thread run inline; calls from any other thread are
    queued until the owner drains them with ``process_pending()``.
    """

    def __init__(self) -> None:
        self._owner = threading.get_ident()
        self._queue: "SimpleQueue[Callable[[], None]]" = SimpleQueue()

    @property
    def on_owner_thread(self) -> bool:
        return threading.get_ident() == self._owner

    def __call__(self, fn: Callable[[], None]) -> None:
        if self.on_owner_thread:
            fn()
        else:
            self._queue.put(fn)

    def process_pending(self, timeout: float = 0) -> int:
        """Run queued callables; wait up to ``timeout`` seconds for the first one."""
        if not self.on_owner_thread:
            raise RuntimeError("process_pending() must run on the thread that owns the dispatcher")
        ran = 0
        try:
            fn = self._queue.get(timeout=timeout) if timeout > 0 else self._queue.get_nowait()
        except Empty:
            return ran
        while True:
            fn()
            ran += 1
            try:
                fn = self._queue.get_nowait()
            except Empty:
                return ran


class ImmediateScheduler:
    def schedule(self, fn: Callable[[], None]) -> None:
        fn()

    def cancel(self) -> None:
        pass


class DebounceScheduler:
    """Runs the last scheduled callable once ``delay`` seconds pass without a new one.

    The callable fires on the timer thread unless ``dispatch`` moves it;
    QuerySession hands it a callable that goes through the session's dispatch.
    """

    def __init__(self, delay: float, dispatch: Dispatch | None = None) -> None:
        self.delay = delay
        self._dispatch = dispatch or _call_now
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def schedule(self, fn: Callable[[], None]) -> None:
        timer = threading.Timer(self.delay, self._dispatch, args=(fn,))
        timer.daemon = True
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None


class QuerySession:
    """Query text, target index and the lifecycle of the pending request.

    At most one request is pending: ``search()`` cancels the previous one and
    only the latest request's outcome is ever applied (last-request-wins).
    Outcomes are handed to ``dispatch`` so they are applied on the thread
    that owns the session, and scheduled searches go through it too. Without
    a ``dispatch`` the session owns an OwnerThreadDispatcher: work finished on
    other threads waits until the owner calls ``process_pending()``.
    """

    def __init__(
        self,
        service: SearchService,
        index_name: str,
        *,
        filter_state: FilterState | None = None,
        scheduler: SearchScheduler | None = None,
        executor: Executor | None = None,
        dispatch: Dispatch | None = None,
        hits_per_page: int = 20,
    ) -> None:
        self.service = service
        self.index_name = index_name
        self.query = ""
        self.page = 0
        self.hits_per_page = hits_per_page
        self.last_response: Optional[SearchResponse] = None
        self.last_error: Optional[SearchError] = None
        self.filter_state: Optional[FilterState] = None

        self._scheduler: SearchScheduler = scheduler or ImmediateScheduler()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="QuerySession")
        self._inbox: Optional[OwnerThreadDispatcher] = None
        if dispatch is None:
            self._inbox = dispatch = OwnerThreadDispatcher()
        self._dispatch: Dispatch = dispatch
        self._lock = threading.Lock()
        self._seq = 0
        self._pending: Optional[Tuple[Future, threading.Event]] = None
        self._facets: List[str] = []
        self._responses: SubscriberList[SearchResponse] = SubscriberList()
        self._errors: SubscriberList[SearchError] = SubscriberList()
        self._filter_sub: Optional[Subscription] = None
        self._clear_actions: List[ClearTrigger] = []
        self._closed = False

        if filter_state is not None:
            self.connect_filter_state(filter_state)

    def __enter__(self) -> "QuerySession":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # Wiring
    def connect_filter_state(self, state: FilterState) -> None:
        if self._filter_sub is not None:
            self._filter_sub.cancel()
        self.filter_state = state
        self._filter_sub = state.subscribe(self._on_filters_changed)

    def add_facet_attribute(self, attribute: str) -> None:
        if attribute not in self._facets:
            self._facets.append(attribute)

    @property
    def facet_attributes(self) -> Tuple[str, ...]:
        return tuple(self._facets)

    def add_response_listener(self, callback: Callable[[SearchResponse], None]) -> Subscription:
        return self._responses.add(callback)

    def add_error_listener(self, callback: Callable[[SearchError], None]) -> Subscription:
        return self._errors.add(callback)

    # Clear-filters actions owned by this session
    def register_clear_action(self, trigger: ClearTrigger) -> None:
        if trigger in self._clear_actions:
            return
        self._clear_actions.append(trigger)
        trigger.on_trigger(self.clear_filters)

    @property
    def clear_actions(self) -> Tuple[ClearTrigger, ...]:
        return tuple(self._clear_actions)

    def clear_filters(self) -> None:
        if self.filter_state is None:
            return
        log.info("Clearing all filters")
        # Notifies subscribers, which triggers the next search
        self.filter_state.clear_all()

    # Query
    def set_query_text(self, text: str) -> None:
        self.query = text or ""
        self.page = 0
        self._scheduler.schedule(self._scheduled_search)

    def set_page(self, page: int) -> None:
        self.page = max(0, page)
        self.search()

    def build_request(self) -> SearchRequest:
        filters = self.filter_state.snapshot() if self.filter_state is not None else FilterSnapshot()
        return SearchRequest(
            index_name=self.index_name,
            query=self.query,
            filters=filters,
            facets=tuple(self._facets),
            page=self.page,
            hits_per_page=self.hits_per_page,
        )

    def search(self) -> Optional[Future]:
        if self._closed:
            log.debug("search() on a closed session ignored")
            return None
        request = self.build_request()
        cancel = threading.Event()
        with self._lock:
            self._seq += 1
            seq = self._seq
            previous, self._pending = self._pending, None
        if previous is not None:
            self._cancel(previous)
        future = self._executor.submit(self._execute, request, cancel)
        with self._lock:
            if seq == self._seq and not future.done():
                self._pending = (future, cancel)
        future.add_done_callback(lambda f: self._on_done(seq, cancel, f))
        return future

    def process_pending(self, timeout: float = 0) -> int:
        """Apply outcomes queued for the owning thread; see OwnerThreadDispatcher."""
        if self._inbox is None:
            return 0
        return self._inbox.process_pending(timeout)

    @property
    def is_searching(self) -> bool:
        with self._lock:
            return self._pending is not None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._scheduler.cancel()
        with self._lock:
            pending, self._pending = self._pending, None
        if pending is not None:
            self._cancel(pending)
        if self._filter_sub is not None:
            self._filter_sub.cancel()
            self._filter_sub = None
        self._responses.clear()
        self._errors.clear()
        self._clear_actions.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # Internals
    @staticmethod
    def _cancel(pending: Tuple[Future, threading.Event]) -> None:
        future, cancel = pending
        cancel.set()
        future.cancel()

    def _scheduled_search(self) -> None:
        # Schedulers may fire on a timer thread
        self._dispatch(self.search)

    def _on_filters_changed(self, snapshot: FilterSnapshot) -> None:
        self.page = 0
        self.search()

    def _execute(self, request: SearchRequest, cancel: threading.Event) -> Optional[SearchResponse]:
        if cancel.is_set():
            return None
        return self.service.execute(request, cancel)

    def _on_done(self, seq: int, cancel: threading.Event, future: Future) -> None:
        if future.cancelled():
            return
        self._dispatch(lambda: self._apply(seq, cancel, future))

    def _apply(self, seq: int, cancel: threading.Event, future: Future) -> None:
        if self._closed:
            return
        with self._lock:
            latest = seq == self._seq
            if latest:
                self._pending = None
        if not latest or cancel.is_set():
            log.debug("Discarding superseded response #%d", seq)
            return

        exc = future.exception()
        if exc is not None:
            if isinstance(exc, SearchError):
                err = exc
            else:
                log.error("Search service raised unexpectedly", exc_info=exc)
                err = SearchError(str(exc) or exc.__class__.__name__)
                err.__cause__ = exc
            self.last_error = err
            log.warning("Search failed: %s", err)
            self._errors.notify(err)
            return

        response = future.result()
        if response is None:
            return
        self.last_error = None
        self.last_response = response
        self._responses.notify(response)
