from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from refinekit.index.records_repo import RecordsRepo
from .loader import DatasetError, index_name_for, is_dataset, iter_dataset_files, load_file, needs_reload


log = logging.getLogger(__name__)


@dataclass
class WatcherConfig:
    roots: Sequence[Path]
    skip_unchanged: bool = True


class _Handler(FileSystemEventHandler):
    def __init__(self, watcher: "DatasetWatcher") -> None:
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent):  # type: ignore[override]
        if event.is_directory:
            return
        self.watcher.reload(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent):  # type: ignore[override]
        if event.is_directory:
            return
        self.watcher.reload(Path(event.src_path))

    def on_moved(self, event):  # type: ignore[override]
        if event.is_directory:
            return
        # Drop first: a move between folders keeps the index name
        self.watcher.drop(Path(event.src_path))
        if getattr(event, "dest_path", None):
            self.watcher.reload(Path(event.dest_path))

    def on_deleted(self, event: FileSystemEvent):  # type: ignore[override]
        if event.is_directory:
            return
        self.watcher.drop(Path(event.src_path))


class DatasetWatcher:
    """Loads dataset files into the local index and keeps them in sync."""

    def __init__(self, repo: RecordsRepo, cfg: WatcherConfig) -> None:
        self.repo = repo
        self.cfg = cfg
        self._observers: List[Observer] = []
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._on_status: Callable[[str], None] | None = None
        self._on_reload: Callable[[str], None] | None = None

    def on_status(self, fn: Callable[[str], None]) -> None:
        self._on_status = fn

    def on_reload(self, fn: Callable[[str], None]) -> None:
        """``fn`` receives the name of every index that was (re)loaded or dropped."""
        self._on_reload = fn

    def _emit_status(self, msg: str) -> None:
        log.info(msg)
        if self._on_status:
            self._on_status(msg)

    def _emit_reload(self, index_name: str) -> None:
        if self._on_reload:
            self._on_reload(index_name)

    def reload(self, path: Path) -> bool:
        if not is_dataset(path):
            return False
        try:
            count = load_file(self.repo, path)
        except FileNotFoundError:
            return False
        except (DatasetError, OSError) as exc:
            # Partially written files are picked up again by the next event
            self._emit_status(f"Could not load {path.name}: {exc}")
            return False
        self._emit_status(f"Loaded {path.name} ({count} records)")
        self._emit_reload(index_name_for(path))
        return True

    def drop(self, path: Path) -> None:
        if not is_dataset(path):
            return
        name = index_name_for(path)
        self.repo.delete_index(name)
        self._emit_status(f"Removed index {name}")
        self._emit_reload(name)

    def _scan_root(self, root: Path) -> int:
        loaded = 0
        self._emit_status(f"Scanning {root}…")
        for path in iter_dataset_files(root):
            if self._stop_event.is_set():
                break
            if self.cfg.skip_unchanged and not needs_reload(self.repo, path):
                continue
            if self.reload(path):
                loaded += 1
        return loaded

    def scan(self) -> int:
        loaded = sum(self._scan_root(root) for root in self.cfg.roots)
        self._emit_status(f"Datasets ready ({len(self.repo.index_names())} indices)")
        return loaded

    def start(self) -> None:
        self._stop_event.clear()
        self.scan()

        handler = _Handler(self)
        for root in self.cfg.roots:
            if not root.is_dir():
                continue
            ob = Observer()
            ob.schedule(handler, str(root), recursive=True)
            ob.daemon = True
            ob.start()
            self._observers.append(ob)
        self._emit_status("Watching datasets for changes…")

        while not self._stop_event.is_set():
            time.sleep(0.5)

    def start_in_thread(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self.start, name="DatasetWatcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        for ob in self._observers:
            ob.stop()
            ob.join(timeout=2.0)
        self._observers.clear()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self._thread = None
        self._stop_event = threading.Event()
