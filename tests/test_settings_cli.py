from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from refinekit.cli import app
from refinekit.config.settings import (
    BUNDLED_DATASET_DIR,
    ENV_DATASET_DIRS,
    Settings,
    resolve_dataset_dirs,
)


class SettingsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def test_defaults_come_from_packaged_toml(self) -> None:
        settings = Settings()
        self.assertEqual(settings.debounce_ms, 200)
        self.assertEqual(settings.hits_per_page, 20)
        self.assertEqual(settings.default_index, "mobile_demo_facet_list")
        self.assertAlmostEqual(settings.debounce_seconds, 0.2)

    def test_save_and_load_round_trip_ignores_unknown_keys(self) -> None:
        path = self.root / "settings.json"
        Settings(debounce_ms=50, dataset_dirs=[str(self.root)]).save(path)
        data = json.loads(path.read_text("utf-8"))
        data["retired_option"] = True
        path.write_text(json.dumps(data), encoding="utf-8")

        loaded = Settings.load(path)
        self.assertEqual(loaded.debounce_ms, 50)
        self.assertEqual(loaded.dataset_dirs, [str(self.root)])

    def test_corrupt_settings_fall_back_to_defaults(self) -> None:
        path = self.root / "settings.json"
        path.write_text("{", encoding="utf-8")
        with self.assertLogs("refinekit.config.settings", level="WARNING"):
            settings = Settings.load(path)
        self.assertEqual(settings.debounce_ms, 200)

    def test_dataset_dir_resolution_order(self) -> None:
        env_dir = self.root / "env"
        saved_dir = self.root / "saved"
        env_dir.mkdir()
        saved_dir.mkdir()
        settings = Settings(dataset_dirs=[str(saved_dir), str(self.root / "missing")])

        with mock.patch.dict(os.environ, {ENV_DATASET_DIRS: str(env_dir)}):
            self.assertEqual(resolve_dataset_dirs(settings), [env_dir])
        with mock.patch.dict(os.environ, {ENV_DATASET_DIRS: ""}):
            self.assertEqual(resolve_dataset_dirs(settings), [saved_dir])
            self.assertEqual(resolve_dataset_dirs(Settings(dataset_dirs=[])), [BUNDLED_DATASET_DIR])


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)
        self.db = str(self.root / "cli.db")
        self.runner = CliRunner()

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def test_load_then_search_with_filters(self) -> None:
        result = self.runner.invoke(app, ["load", str(BUNDLED_DATASET_DIR / "mobile_demo_facet_list.json"), "--db", self.db])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("16 records", result.output)

        result = self.runner.invoke(
            app,
            [
                "search", "",
                "--index", "mobile_demo_facet_list",
                "--filter", "color=red",
                "--facet", "category",
                "--db", self.db,
            ],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("4 hits in", result.output)
        self.assertIn('Filters: "color":"red"', result.output)
        self.assertIn("accessories (2)", result.output)

    def test_search_unknown_index_fails(self) -> None:
        result = self.runner.invoke(app, ["search", "x", "--index", "nope", "--db", self.db])
        self.assertEqual(result.exit_code, 1)

    def test_bad_filter_is_rejected(self) -> None:
        result = self.runner.invoke(app, ["search", "x", "--filter", "color", "--db", self.db])
        self.assertNotEqual(result.exit_code, 0)


if __name__ == "__main__":
    unittest.main()
