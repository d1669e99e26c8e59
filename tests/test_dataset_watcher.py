from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path

from refinekit.index.db import initialize
from refinekit.index.records_repo import RecordsRepo
from refinekit.service.loader import DatasetError, load_file, needs_reload, read_records

try:
    import watchdog  # type: ignore[unused-import]
except ModuleNotFoundError:  # pragma: no cover
    WATCHDOG_AVAILABLE = False
else:
    WATCHDOG_AVAILABLE = True

if WATCHDOG_AVAILABLE:
    from watchdog.events import FileDeletedEvent, FileMovedEvent

    from refinekit.service.watcher import DatasetWatcher, WatcherConfig, _Handler
else:  # pragma: no cover
    DatasetWatcher = WatcherConfig = _Handler = None


class LoaderTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)
        initialize(self.root / "test.db")
        self.repo = RecordsRepo(db_path=self.root / "test.db")

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def test_json_with_records_key(self) -> None:
        path = self.root / "shop.json"
        path.write_text(json.dumps({"records": [{"name": "a", "color": "red"}]}), encoding="utf-8")
        self.assertEqual(read_records(path), [{"name": "a", "color": "red"}])

    def test_jsonl_and_csv(self) -> None:
        jsonl = self.root / "a.jsonl"
        jsonl.write_text('{"name": "x"}\n\n{"name": "y"}\n', encoding="utf-8")
        self.assertEqual([r["name"] for r in read_records(jsonl)], ["x", "y"])

        csv_path = self.root / "b.csv"
        csv_path.write_text("name,category\nTV,tv|audio\nRadio,audio\n", encoding="utf-8")
        records = read_records(csv_path)
        self.assertEqual(records[0]["category"], ["tv", "audio"])
        self.assertEqual(records[1]["category"], "audio")

    def test_invalid_datasets(self) -> None:
        bad_json = self.root / "bad.json"
        bad_json.write_text("{not json", encoding="utf-8")
        with self.assertRaises(DatasetError):
            read_records(bad_json)
        scalar = self.root / "scalar.json"
        scalar.write_text("[1, 2]", encoding="utf-8")
        with self.assertRaises(DatasetError):
            read_records(scalar)
        with self.assertRaises(DatasetError):
            read_records(self.root / "notes.txt")

    def test_load_file_tracks_mtime(self) -> None:
        path = self.root / "shop.json"
        path.write_text(json.dumps([{"name": "a"}, {"name": "b"}]), encoding="utf-8")
        self.assertTrue(needs_reload(self.repo, path))
        self.assertEqual(load_file(self.repo, path), 2)
        self.assertFalse(needs_reload(self.repo, path))
        self.assertEqual(self.repo.count("shop"), 2)

        st = path.stat()
        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))
        self.assertTrue(needs_reload(self.repo, path))


@unittest.skipUnless(WATCHDOG_AVAILABLE, "watchdog not installed")
class DatasetWatcherScanTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)
        self.watch_root = self.root / "datasets"
        self.db_path = self.root / "test.db"
        initialize(self.db_path)
        self.repo = RecordsRepo(db_path=self.db_path)
        (self.watch_root / "nested").mkdir(parents=True, exist_ok=True)
        (self.watch_root / "colors.json").write_text(
            json.dumps([{"name": "a", "color": "red"}, {"name": "b", "color": "blue"}]), encoding="utf-8"
        )
        (self.watch_root / "nested" / "sizes.jsonl").write_text('{"name": "c", "size": "m"}\n', encoding="utf-8")
        (self.watch_root / "readme.txt").write_text("ignored", encoding="utf-8")
        self.watcher = DatasetWatcher(self.repo, WatcherConfig(roots=[self.watch_root]))
        self.statuses: list[str] = []
        self.reloaded: list[str] = []
        self.watcher.on_status(self.statuses.append)
        self.watcher.on_reload(self.reloaded.append)

    def tearDown(self) -> None:
        self.watcher.stop()
        self._tmpdir.cleanup()

    def test_scan_root_loads_datasets(self) -> None:
        loaded = self.watcher._scan_root(self.watch_root)
        self.assertEqual(loaded, 2)
        self.assertEqual(self.repo.index_names(), ["colors", "sizes"])
        self.assertEqual(sorted(self.reloaded), ["colors", "sizes"])
        self.assertTrue(any("colors.json" in msg for msg in self.statuses))

    def test_rescan_skips_unchanged(self) -> None:
        self.watcher.scan()
        self.reloaded.clear()
        self.assertEqual(self.watcher.scan(), 0)
        self.assertEqual(self.reloaded, [])

    def test_broken_file_reports_status(self) -> None:
        broken = self.watch_root / "broken.json"
        broken.write_text("[{", encoding="utf-8")
        self.assertFalse(self.watcher.reload(broken))
        self.assertTrue(any("Could not load broken.json" in msg for msg in self.statuses))

    def test_drop_removes_index(self) -> None:
        self.watcher.scan()
        self.watcher.drop(self.watch_root / "colors.json")
        self.assertEqual(self.repo.index_names(), ["sizes"])
        self.assertEqual(self.reloaded[-1], "colors")


    def test_rename_reloads_destination_and_drops_source(self) -> None:
        self.watcher.scan()
        src = self.watch_root / "colors.json"
        dest = self.watch_root / "palette.json"
        src.rename(dest)
        _Handler(self.watcher).on_moved(FileMovedEvent(str(src), str(dest)))
        self.assertEqual(self.repo.index_names(), ["palette", "sizes"])
        self.assertEqual(self.repo.count("palette"), 2)

    def test_move_between_folders_keeps_index(self) -> None:
        self.watcher.scan()
        src = self.watch_root / "colors.json"
        dest = self.watch_root / "nested" / "colors.json"
        src.rename(dest)
        _Handler(self.watcher).on_moved(FileMovedEvent(str(src), str(dest)))
        self.assertEqual(self.repo.count("colors"), 2)

    def test_delete_event_drops_index(self) -> None:
        self.watcher.scan()
        path = self.watch_root / "nested" / "sizes.jsonl"
        path.unlink()
        _Handler(self.watcher).on_deleted(FileDeletedEvent(str(path)))
        self.assertEqual(self.repo.index_names(), ["colors"])

    def test_restored_file_with_same_mtime_is_reloaded(self) -> None:
        self.watcher.scan()
        path = self.watch_root / "colors.json"
        self.watcher.drop(path)
        self.assertIsNone(self.repo.dataset_mtime(str(path.resolve())))
        self.assertEqual(self.watcher.scan(), 1)
        self.assertEqual(self.repo.count("colors"), 2)

if __name__ == "__main__":
    unittest.main()
