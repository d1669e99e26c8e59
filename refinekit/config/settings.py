from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Sequence

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[import]

from refinekit.index.db import DATA_DIR


log = logging.getLogger(__name__)

SETTINGS_PATH = DATA_DIR / "settings.json"
DEFAULTS_PATH = Path(__file__).with_name("defaults.toml")
BUNDLED_DATASET_DIR = Path(__file__).resolve().parents[1] / "data"
ENV_DATASET_DIRS = "REFINEKIT_DATASET_DIRS"
_DEFAULTS_CACHE: Dict[str, Any] | None = None


def _load_defaults() -> Dict[str, Any]:
    global _DEFAULTS_CACHE
    if _DEFAULTS_CACHE is not None:
        return _DEFAULTS_CACHE
    if not DEFAULTS_PATH.exists():
        _DEFAULTS_CACHE = {}
        return _DEFAULTS_CACHE
    try:
        with DEFAULTS_PATH.open("rb") as fh:
            _DEFAULTS_CACHE = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        log.warning("Ignoring unreadable %s: %s", DEFAULTS_PATH, exc)
        _DEFAULTS_CACHE = {}
    return _DEFAULTS_CACHE


def _default(key: str, fallback: Any) -> Any:
    value = _load_defaults().get(key, fallback)
    if isinstance(fallback, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return fallback
    return value


def _coerce_dirs(raw_paths: Sequence[str]) -> List[Path]:
    paths: List[Path] = []
    for raw in raw_paths:
        p = Path(raw).expanduser()
        if p.exists() and p.is_dir():
            paths.append(p)
    return paths


@dataclass
class Settings:
    debounce_ms: int = field(default_factory=lambda: _default("debounce_ms", 200))
    hits_per_page: int = field(default_factory=lambda: _default("hits_per_page", 20))
    search_latency_ms: int = field(default_factory=lambda: _default("search_latency_ms", 0))
    default_index: str = field(default_factory=lambda: str(_default("default_index", "mobile_demo_facet_list")))
    dataset_dirs: List[str] = field(default_factory=lambda: [str(p) for p in _default("dataset_dirs", [])])

    @classmethod
    def load(cls, path: Path = SETTINGS_PATH) -> "Settings":
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text("utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def save(self, path: Path = SETTINGS_PATH) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(self), indent=2), encoding="utf-8")

    @property
    def debounce_seconds(self) -> float:
        return max(0, self.debounce_ms) / 1000.0


def resolve_dataset_dirs(settings: Settings) -> List[Path]:
    """Environment first, then saved settings, then the bundled demo data."""
    env = os.environ.get(ENV_DATASET_DIRS)
    if env:
        paths = _coerce_dirs([p.strip() for p in env.split(os.pathsep) if p.strip()])
        if paths:
            return paths

    saved = _coerce_dirs(settings.dataset_dirs)
    if saved:
        return saved

    return [BUNDLED_DATASET_DIR]
