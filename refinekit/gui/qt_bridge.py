from __future__ import annotations

from typing import Callable, Optional

from PySide6 import QtCore

from refinekit.config.settings import Settings
from refinekit.core.filter_state import FilterState
from refinekit.core.session import QuerySession, SearchService


class QtDispatcher(QtCore.QObject):
    """Runs callables on the thread this object lives in (the UI thread).

    Passed as ``dispatch`` to a QuerySession so responses computed on the
    worker thread are applied on the UI thread.
    """

    _invoke = QtCore.Signal(object)

    def __init__(self, parent: QtCore.QObject | None = None) -> None:
        super().__init__(parent)
        self._invoke.connect(self._run, QtCore.Qt.QueuedConnection)

    def __call__(self, fn: Callable[[], None]) -> None:
        self._invoke.emit(fn)

    @QtCore.Slot(object)
    def _run(self, fn: Callable[[], None]) -> None:
        fn()


class QtDebounceScheduler(QtCore.QObject):
    """SearchScheduler on a single-shot QTimer; restarts on every keystroke."""

    def __init__(self, interval_ms: int = 200, parent: QtCore.QObject | None = None) -> None:
        super().__init__(parent)
        self._fn: Optional[Callable[[], None]] = None
        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, interval_ms))
        self._timer.timeout.connect(self._fire)

    def schedule(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._timer.start()

    def cancel(self) -> None:
        self._timer.stop()
        self._fn = None

    def _fire(self) -> None:
        fn, self._fn = self._fn, None
        if fn is not None:
            fn()


def qt_session(
    service: SearchService,
    index_name: str,
    settings: Settings,
    parent: QtCore.QObject,
    filter_state: FilterState | None = None,
) -> QuerySession:
    """QuerySession whose results land on the UI thread, debounced by a QTimer."""
    return QuerySession(
        service,
        index_name,
        filter_state=filter_state,
        scheduler=QtDebounceScheduler(settings.debounce_ms, parent),
        dispatch=QtDispatcher(parent),
        hits_per_page=settings.hits_per_page,
    )
