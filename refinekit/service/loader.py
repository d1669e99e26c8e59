from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from refinekit.core.errors import RefineKitError
from refinekit.index.records_repo import RecordsRepo


log = logging.getLogger(__name__)

JSON_EXTS = {".json"}
JSONL_EXTS = {".jsonl", ".ndjson"}
CSV_EXTS = {".csv"}
DATASET_EXTS = JSON_EXTS | JSONL_EXTS | CSV_EXTS
# CSV cells holding several facet values, e.g. "tv|audio"
CSV_LIST_SEPARATOR = "|"


class DatasetError(RefineKitError):
    pass


def is_dataset(path: Path) -> bool:
    return path.suffix.lower() in DATASET_EXTS and not path.name.startswith(".")


def index_name_for(path: Path) -> str:
    return path.stem


def _json_records(path: Path) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("records", data.get("hits"))
    if not isinstance(data, list):
        raise DatasetError(f"{path}: expected a list of records")
    return data


def _jsonl_records(path: Path) -> List[Dict[str, Any]]:
    records = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except ValueError as exc:
                raise DatasetError(f"{path}:{lineno}: {exc}") from exc
    return records


def _csv_records(path: Path) -> List[Dict[str, Any]]:
    records = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        for row in csv.DictReader(f):
            record: Dict[str, Any] = {}
            for key, value in row.items():
                if key is None:
                    continue
                value = (value or "").strip()
                if CSV_LIST_SEPARATOR in value:
                    record[key] = [v.strip() for v in value.split(CSV_LIST_SEPARATOR) if v.strip()]
                else:
                    record[key] = value
            records.append(record)
    return records


def read_records(path: Path) -> List[Dict[str, Any]]:
    ext = path.suffix.lower()
    try:
        if ext in JSON_EXTS:
            records = _json_records(path)
        elif ext in JSONL_EXTS:
            records = _jsonl_records(path)
        elif ext in CSV_EXTS:
            records = _csv_records(path)
        else:
            raise DatasetError(f"{path}: unsupported dataset type {ext!r}")
    except ValueError as exc:
        raise DatasetError(f"{path}: {exc}") from exc
    bad = [i for i, r in enumerate(records) if not isinstance(r, dict)]
    if bad:
        raise DatasetError(f"{path}: record #{bad[0]} is not an object")
    return records


def load_file(repo: RecordsRepo, path: Path, index_name: Optional[str] = None) -> int:
    """Replace an index with the records of ``path``; returns the record count."""
    records = read_records(path)
    name = index_name or index_name_for(path)
    count = repo.replace_index(name, records)
    repo.mark_dataset_loaded(str(path.resolve()), name, path.stat().st_mtime_ns, count)
    log.info("Loaded %d records into %r from %s", count, name, path)
    return count


def needs_reload(repo: RecordsRepo, path: Path) -> bool:
    try:
        mtime = path.stat().st_mtime_ns
    except FileNotFoundError:
        return False
    return repo.dataset_mtime(str(path.resolve())) != mtime


def iter_dataset_files(root: Path) -> Iterator[Path]:
    if root.is_file():
        if is_dataset(root):
            yield root
        return
    for path in sorted(root.rglob("*")):
        if path.is_file() and is_dataset(path):
            yield path
