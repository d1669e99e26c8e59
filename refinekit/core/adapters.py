"""Contracts between interactors and the widgets that display them.

Adapters are passive: they render what an interactor hands them and report
user intent through the callbacks registered on them. They never touch a
FilterState or a QuerySession directly.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence, runtime_checkable

from .facets import FacetValue


@runtime_checkable
class FacetListController(Protocol):
    def render(self, items: Sequence[FacetValue]) -> None: ...

    def on_select(self, callback: Callable[[str], None]) -> None: ...


@runtime_checkable
class HitsController(Protocol):
    def render(self, items: Sequence[Mapping[str, Any]]) -> None: ...


@runtime_checkable
class TextController(Protocol):
    def render_text(self, text: str | None) -> None: ...


@runtime_checkable
class QueryInputController(Protocol):
    def on_text_changed(self, callback: Callable[[str], None]) -> None: ...

    def render_text(self, text: str | None) -> None: ...


@runtime_checkable
class ClearTrigger(Protocol):
    def on_trigger(self, callback: Callable[[], None]) -> None: ...
