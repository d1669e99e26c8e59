from __future__ import annotations

import logging
import weakref
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterator, Optional, Set

from .errors import DuplicateGroupRegistration, InvalidGroupOperator
from .observers import SubscriberList, Subscription


log = logging.getLogger(__name__)


class GroupOperator(str, Enum):
    AND = "and"
    OR = "or"

    @classmethod
    def coerce(cls, value: object) -> "GroupOperator":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidGroupOperator(value)


@dataclass(frozen=True)
class FilterGroup:
    name: str
    operator: GroupOperator
    values: FrozenSet[str] = frozenset()

    def to_filter_string(self) -> str:
        terms = [f'"{self.name}":"{v}"' for v in sorted(self.values)]
        if not terms:
            return ""
        joiner = " OR " if self.operator is GroupOperator.OR else " AND "
        expr = joiner.join(terms)
        return f"({expr})" if len(terms) > 1 else expr


class FilterSnapshot(Mapping):
    """Read-only view of a FilterState at one point in time."""

    def __init__(self, groups: Mapping[str, FilterGroup] | None = None) -> None:
        self._groups = MappingProxyType(dict(groups or {}))

    def __getitem__(self, name: str) -> FilterGroup:
        return self._groups[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __repr__(self) -> str:
        return f"FilterSnapshot({self.active()!r})"

    def selected(self, name: str) -> FrozenSet[str]:
        group = self._groups.get(name)
        return group.values if group else frozenset()

    def operator(self, name: str) -> Optional[GroupOperator]:
        group = self._groups.get(name)
        return group.operator if group else None

    def active(self) -> Dict[str, Set[str]]:
        return {name: set(g.values) for name, g in self._groups.items() if g.values}

    def is_empty(self) -> bool:
        return not any(g.values for g in self._groups.values())

    def without(self, name: str) -> "FilterSnapshot":
        return FilterSnapshot({k: g for k, g in self._groups.items() if k != name})

    def to_filter_string(self) -> str:
        parts = [g.to_filter_string() for g in self._groups.values() if g.values]
        return " AND ".join(parts)


@dataclass
class _Group:
    operator: GroupOperator
    values: Set[str] = field(default_factory=set)


class FilterState:
    """Mapping of filter group name to active values.

    Every effective mutation notifies subscribers with the new snapshot,
    synchronously and in registration order, before the call returns.
    Mutations made inside ``batch()`` produce a single notification.
    """

    def __init__(self) -> None:
        self._groups: Dict[str, _Group] = {}
        self._subscribers: SubscriberList[FilterSnapshot] = SubscriberList()
        self._owners: Dict[str, weakref.ref] = {}
        self._batch_depth = 0
        self._dirty = False

    # Subscriptions
    def subscribe(self, callback: Callable[[FilterSnapshot], None]) -> Subscription:
        return self._subscribers.add(callback)

    @contextmanager
    def batch(self) -> Iterator["FilterState"]:
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._subscribers.notify(self.snapshot())

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._subscribers.notify(self.snapshot())

    # Groups
    def set_group(self, name: str, operator: GroupOperator | str = GroupOperator.OR) -> None:
        op = GroupOperator.coerce(operator)
        group = self._groups.get(name)
        if group is None:
            self._groups[name] = _Group(op)
        elif group.operator is not op:
            group.operator = op
        else:
            return
        self._changed()

    def _group(self, name: str) -> _Group:
        group = self._groups.get(name)
        if group is None:
            group = self._groups[name] = _Group(GroupOperator.OR)
        return group

    def has_group(self, name: str) -> bool:
        return name in self._groups

    def operator(self, name: str) -> Optional[GroupOperator]:
        group = self._groups.get(name)
        return group.operator if group else None

    def values(self, name: str) -> FrozenSet[str]:
        group = self._groups.get(name)
        return frozenset(group.values) if group else frozenset()

    def contains(self, name: str, value: str) -> bool:
        group = self._groups.get(name)
        return group is not None and value in group.values

    # Mutations
    def add(self, name: str, value: str) -> None:
        group = self._group(name)
        if value in group.values:
            return
        group.values.add(value)
        self._changed()

    def remove(self, name: str, value: str) -> None:
        group = self._groups.get(name)
        if group is None or value not in group.values:
            return
        group.values.discard(value)
        self._changed()

    def toggle(self, name: str, value: str) -> bool:
        """Flip membership of ``value``; returns whether it is now active."""
        if self.contains(name, value):
            self.remove(name, value)
            return False
        self.add(name, value)
        return True

    def clear(self, name: str) -> None:
        group = self._groups.get(name)
        if group is None or not group.values:
            return
        group.values.clear()
        self._changed()

    def clear_all(self) -> None:
        with self.batch():
            for name in list(self._groups):
                self.clear(name)

    def snapshot(self) -> FilterSnapshot:
        return FilterSnapshot(
            {
                name: FilterGroup(name, g.operator, frozenset(g.values))
                for name, g in self._groups.items()
            }
        )

    def describe(self) -> str:
        return self.snapshot().to_filter_string()

    # Group ownership
    def owner_of(self, name: str) -> object | None:
        ref = self._owners.get(name)
        return ref() if ref is not None else None

    def claim_group(self, name: str, owner: object) -> None:
        current = self.owner_of(name)
        if current is not None and current is not owner:
            # Last registration wins
            log.warning("%s; replacing %r with %r", DuplicateGroupRegistration(name), current, owner)
        self._owners[name] = weakref.ref(owner)

    def release_group(self, name: str, owner: object) -> None:
        if self.owner_of(name) is owner:
            del self._owners[name]
