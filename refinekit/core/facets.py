from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import StaleSelection
from .filter_state import FilterSnapshot, FilterState, GroupOperator
from .observers import Subscription

if TYPE_CHECKING:
    from .adapters import FacetListController
    from .session import QuerySession, SearchResponse


log = logging.getLogger(__name__)


class SelectionMode(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class FacetValue:
    value: str
    count: int = 0
    is_selected: bool = False

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"facet count must be >= 0, got {self.count}")


class FacetSortCriterion(str, Enum):
    COUNT = "count"
    ALPHABETICAL = "alphabetical"
    SELECTED_FIRST = "selected_first"


_SORT_KEYS: dict[FacetSortCriterion, Callable[[FacetValue], object]] = {
    FacetSortCriterion.COUNT: lambda fv: -fv.count,
    FacetSortCriterion.ALPHABETICAL: lambda fv: fv.value.lower(),
    FacetSortCriterion.SELECTED_FIRST: lambda fv: not fv.is_selected,
}


class FacetListPresenter:
    """Orders and trims facet values before they reach a display adapter."""

    def __init__(
        self,
        sort_by: Sequence[FacetSortCriterion | str] = (FacetSortCriterion.SELECTED_FIRST, FacetSortCriterion.COUNT),
        limit: int | None = None,
        show_zero: bool = True,
    ) -> None:
        self.sort_by = [FacetSortCriterion(c) for c in sort_by]
        self.limit = limit
        self.show_zero = show_zero

    def __call__(self, values: Sequence[FacetValue]) -> List[FacetValue]:
        items = list(values)
        if not self.show_zero:
            items = [fv for fv in items if fv.count > 0 or fv.is_selected]
        # Stable sorts applied from the least significant criterion
        for criterion in reversed(self.sort_by):
            items.sort(key=_SORT_KEYS[criterion])
        if self.limit is not None:
            # Selected values are never cut off so they can still be deselected
            room = self.limit
            kept: List[FacetValue] = []
            for fv in items:
                if fv.is_selected:
                    kept.append(fv)
                elif room > 0:
                    kept.append(fv)
                    room -= 1
            items = kept
        return items


class FacetListInteractor:
    """Facet values of one attribute and their selection.

    Publishes selection changes to one FilterState group and receives facet
    counts from a QuerySession.
    """

    def __init__(
        self,
        selection_mode: SelectionMode | str = SelectionMode.MULTIPLE,
        *,
        attribute: str | None = None,
        persistent_selection: bool = False,
        presenter: Callable[[Sequence[FacetValue]], List[FacetValue]] | None = None,
    ) -> None:
        self.selection_mode = SelectionMode(selection_mode)
        self.attribute = attribute
        self.persistent_selection = persistent_selection
        self.presenter = presenter
        self._payload: List[Tuple[str, int]] = []
        self._values: List[FacetValue] = []
        self._state_ref: Optional[weakref.ref] = None
        self._group: Optional[str] = None
        self._state_sub: Optional[Subscription] = None
        self._session_sub: Optional[Subscription] = None
        self._controllers: List["FacetListController"] = []

    def __repr__(self) -> str:
        return f"<FacetListInteractor {self.attribute!r} {self.selection_mode.value}>"

    @property
    def items(self) -> Tuple[FacetValue, ...]:
        return tuple(self._values)

    @property
    def selected(self) -> FrozenSet[str]:
        return frozenset(fv.value for fv in self._values if fv.is_selected)

    @property
    def group(self) -> Optional[str]:
        return self._group

    @property
    def filter_state(self) -> Optional[FilterState]:
        return self._state_ref() if self._state_ref is not None else None

    # Wiring
    def connect_filter_state(
        self,
        state: FilterState,
        group: str | None = None,
        operator: GroupOperator | str = GroupOperator.OR,
    ) -> None:
        group = group or self.attribute
        if not group:
            raise ValueError("a filter group name is required")
        state.set_group(group, operator)
        self.disconnect_filter_state()
        state.claim_group(group, self)
        self._state_ref = weakref.ref(state)
        self._group = group
        if self.attribute is None:
            self.attribute = group
        self._state_sub = state.subscribe(self._on_filters_changed)
        self._rebuild()

    def disconnect_filter_state(self) -> None:
        if self._state_sub is not None:
            self._state_sub.cancel()
            self._state_sub = None
        state = self.filter_state
        if state is not None and self._group is not None:
            state.release_group(self._group, self)
        self._state_ref = None
        self._group = None

    def connect_session(self, session: "QuerySession", attribute: str | None = None) -> None:
        if attribute:
            self.attribute = attribute
        if not self.attribute:
            raise ValueError("a facet attribute is required")
        if self._session_sub is not None:
            self._session_sub.cancel()
        session.add_facet_attribute(self.attribute)
        self._session_sub = session.add_response_listener(self._on_response)
        if session.last_response is not None:
            self._on_response(session.last_response)

    def connect_controller(self, controller: "FacetListController") -> None:
        self._controllers.append(controller)
        controller.on_select(self.user_select)
        controller.render(self.items)

    # Inputs
    def on_response_payload(self, facet_counts: Mapping[str, int] | Iterable[Tuple[str, int]]) -> None:
        pairs = facet_counts.items() if isinstance(facet_counts, Mapping) else facet_counts
        self._payload = [(str(value), int(count)) for value, count in pairs]
        self._rebuild()

    def user_select(self, value: str) -> bool:
        """Apply a tap on ``value``; returns False when the tap is dropped."""
        if value not in {fv.value for fv in self._values}:
            # A tap on a row from before the latest response
            log.debug("Dropping selection: %s", StaleSelection(self.attribute or "", value))
            return False

        state = self.filter_state
        if state is None:
            self._values = [
                FacetValue(fv.value, fv.count, self._toggled(fv, value))
                for fv in self._values
            ]
            self._notify()
            return True

        group = self._group
        if state.owner_of(group) is not self:
            log.debug("Dropping selection on %r: group is owned by another interactor", group)
            return False
        with state.batch():
            if self.selection_mode is SelectionMode.SINGLE:
                for other in state.values(group):
                    if other != value:
                        state.remove(group, other)
            state.toggle(group, value)
        return True

    # Internals
    def _toggled(self, fv: FacetValue, value: str) -> bool:
        if fv.value == value:
            return not fv.is_selected
        if self.selection_mode is SelectionMode.SINGLE:
            return False
        return fv.is_selected

    def _on_response(self, response: "SearchResponse") -> None:
        self.on_response_payload(response.facet_counts(self.attribute or ""))

    def _on_filters_changed(self, snapshot: FilterSnapshot) -> None:
        self._rebuild(snapshot)

    def _selection(self, snapshot: FilterSnapshot | None = None) -> FrozenSet[str]:
        if snapshot is not None and self._group is not None:
            return snapshot.selected(self._group)
        state = self.filter_state
        if state is not None and self._group is not None:
            return state.values(self._group)
        return self.selected

    def _rebuild(self, snapshot: FilterSnapshot | None = None) -> None:
        selected = self._selection(snapshot)
        values = [FacetValue(v, c, v in selected) for v, c in self._payload]
        if self.persistent_selection:
            seen = {fv.value for fv in values}
            values.extend(FacetValue(v, 0, True) for v in sorted(selected - seen))
        if self.presenter is not None:
            values = self.presenter(values)
        self._values = values
        self._notify()

    def _notify(self) -> None:
        items = self.items
        for controller in list(self._controllers):
            controller.render(items)
