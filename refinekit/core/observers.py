from __future__ import annotations

from typing import Callable, Generic, List, TypeVar


T = TypeVar("T")


class Subscription:
    """Handle returned by ``subscribe``; ``cancel()`` detaches the callback."""

    def __init__(self, owner: "SubscriberList", callback: Callable) -> None:
        self._owner = owner
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._owner is not None

    def cancel(self) -> None:
        if self._owner is None:
            return
        self._owner._remove(self)
        self._owner = None


class SubscriberList(Generic[T]):
    """Callbacks notified synchronously, in registration order."""

    def __init__(self) -> None:
        self._subs: List[Subscription] = []

    def __len__(self) -> int:
        return len(self._subs)

    def add(self, callback: Callable[[T], None]) -> Subscription:
        sub = Subscription(self, callback)
        self._subs.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subs.remove(sub)
        except ValueError:
            pass

    def notify(self, payload: T) -> None:
        # Copy so callbacks may unsubscribe while being notified
        for sub in list(self._subs):
            if sub.active:
                sub.callback(payload)

    def clear(self) -> None:
        for sub in list(self._subs):
            sub.cancel()
