from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from .adapters import HitsController, QueryInputController, TextController
from .filter_state import FilterSnapshot, FilterState
from .observers import Subscription
from .session import QuerySession, SearchResponse


class HitsInteractor:
    """Keeps the hits of the latest response."""

    def __init__(self) -> None:
        self._hits: List[Dict[str, Any]] = []
        self._controllers: List[HitsController] = []
        self._session_sub: Optional[Subscription] = None

    @property
    def hits(self) -> Tuple[Dict[str, Any], ...]:
        return tuple(self._hits)

    def connect_session(self, session: QuerySession) -> None:
        if self._session_sub is not None:
            self._session_sub.cancel()
        self._session_sub = session.add_response_listener(self.on_response)
        if session.last_response is not None:
            self.on_response(session.last_response)

    def connect_controller(self, controller: HitsController) -> None:
        self._controllers.append(controller)
        controller.render(self.hits)

    def on_response(self, response: SearchResponse) -> None:
        self._hits = list(response.hits)
        for controller in list(self._controllers):
            controller.render(self.hits)


def default_stats_text(response: SearchResponse) -> str:
    return f"{response.nb_hits} hits in {response.processing_time_ms} ms"


class StatsInteractor:
    """Extracts search metadata from a response and presents it as text."""

    def __init__(self, presenter: Callable[[SearchResponse], str] = default_stats_text) -> None:
        self.presenter = presenter
        self.text: Optional[str] = None
        self._controllers: List[TextController] = []
        self._session_sub: Optional[Subscription] = None

    def connect_session(self, session: QuerySession) -> None:
        if self._session_sub is not None:
            self._session_sub.cancel()
        self._session_sub = session.add_response_listener(self.on_response)
        if session.last_response is not None:
            self.on_response(session.last_response)

    def connect_controller(self, controller: TextController) -> None:
        self._controllers.append(controller)
        controller.render_text(self.text)

    def on_response(self, response: SearchResponse) -> None:
        self.text = self.presenter(response)
        for controller in list(self._controllers):
            controller.render_text(self.text)


class SearchStateInteractor:
    """Describes the current query and active filters, e.g. for a debug panel."""

    def __init__(self) -> None:
        self.query = ""
        self.filters = ""
        self._controllers: List[TextController] = []
        self._subs: List[Subscription] = []

    @property
    def text(self) -> str:
        lines = [f"Query: {self.query!r}"]
        lines.append(f"Filters: {self.filters or '(none)'}")
        return "\n".join(lines)

    def connect_session(self, session: QuerySession) -> None:
        self._subs.append(session.add_response_listener(self._on_response))
        self.query = session.query
        self._notify()

    def connect_filter_state(self, state: FilterState) -> None:
        self._subs.append(state.subscribe(self._on_filters_changed))
        self.filters = state.describe()
        self._notify()

    def connect_controller(self, controller: TextController) -> None:
        self._controllers.append(controller)
        controller.render_text(self.text)

    def disconnect(self) -> None:
        for sub in self._subs:
            sub.cancel()
        self._subs.clear()

    def _on_response(self, response: SearchResponse) -> None:
        self.query = response.query
        self._notify()

    def _on_filters_changed(self, snapshot: FilterSnapshot) -> None:
        self.filters = snapshot.to_filter_string()
        self._notify()

    def _notify(self) -> None:
        for controller in list(self._controllers):
            controller.render_text(self.text)


class QueryInputInteractor:
    """Forwards text typed into an input adapter to a QuerySession."""

    def __init__(self) -> None:
        self._session: Optional[QuerySession] = None
        self._controllers: List[QueryInputController] = []

    def connect_session(self, session: QuerySession) -> None:
        self._session = session

    def connect_controller(self, controller: QueryInputController) -> None:
        self._controllers.append(controller)
        if self._session is not None:
            controller.render_text(self._session.query)
        controller.on_text_changed(self.on_text_changed)

    def on_text_changed(self, text: str) -> None:
        if self._session is not None:
            self._session.set_query_text(text)

