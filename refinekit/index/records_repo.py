from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from refinekit.core.filter_state import FilterSnapshot, GroupOperator

from .db import DB_PATH, connect


TITLE_KEYS = ("name", "title")
ID_KEYS = ("objectID", "object_id", "id")
# Never offered as facets when facet attributes are inferred
NON_FACET_KEYS = {*TITLE_KEYS, *ID_KEYS, "description", "image", "url"}


def record_object_id(record: Mapping[str, Any], fallback: str) -> str:
    for key in ID_KEYS:
        value = record.get(key)
        if value not in (None, ""):
            return str(value)
    return fallback


def record_title(record: Mapping[str, Any]) -> str:
    for key in TITLE_KEYS:
        value = record.get(key)
        if value:
            return str(value)
    return ""


def facet_values_of(record: Mapping[str, Any], attributes: Sequence[str] | None = None) -> Dict[str, List[str]]:
    """Facetable values per attribute: strings, numbers, bools and lists of those."""
    keys = attributes if attributes is not None else [k for k in record if k not in NON_FACET_KEYS]
    out: Dict[str, List[str]] = {}
    for key in keys:
        raw = record.get(key)
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        values: List[str] = []
        for item in items:
            if isinstance(item, bool):
                values.append("true" if item else "false")
            elif isinstance(item, (str, int, float)) and item != "":
                values.append(str(item))
        if values:
            out[key] = values
    return out


def like_pattern(text: str) -> str:
    """Substring pattern for a LIKE with a backslash ESCAPE; ``%`` and ``_`` match literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_text_of(record: Mapping[str, Any]) -> str:
    parts: List[str] = []
    for value in record.values():
        items = value if isinstance(value, (list, tuple)) else [value]
        parts.extend(str(i) for i in items if isinstance(i, (str, int, float)) and not isinstance(i, bool))
    return " ".join(parts).lower()


class RecordsRepo:
    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return connect(self.db_path)

    @contextmanager
    def _session(self, connection: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        if connection is not None:
            yield connection
            return
        con = self._connect()
        try:
            with con:
                yield con
        finally:
            con.close()

    # Writes
    def upsert_record(
        self,
        index_name: str,
        record: Mapping[str, Any],
        facet_attributes: Sequence[str] | None = None,
        *,
        position: int = 0,
        connection: sqlite3.Connection | None = None,
    ) -> int:
        object_id = record_object_id(record, fallback=str(position))
        body = dict(record)
        body.setdefault("objectID", object_id)
        with self._session(connection) as con:
            con.execute(
                """
                INSERT INTO records(index_name, object_id, title, search_text, body, position)
                VALUES(?, ?, ?, ?, ?, ?)
                ON CONFLICT(index_name, object_id) DO UPDATE SET
                  title=excluded.title,
                  search_text=excluded.search_text,
                  body=excluded.body,
                  position=excluded.position
                """,
                (
                    index_name, object_id, record_title(record), search_text_of(record),
                    json.dumps(body, ensure_ascii=False), position,
                ),
            )
            row = con.execute(
                "SELECT id FROM records WHERE index_name=? AND object_id=?", (index_name, object_id)
            ).fetchone()
            record_id = int(row[0])
            con.execute("DELETE FROM facet_values WHERE record_id=?", (record_id,))
            con.executemany(
                "INSERT OR IGNORE INTO facet_values(record_id, attribute, value) VALUES(?, ?, ?)",
                [
                    (record_id, attr, value)
                    for attr, values in facet_values_of(record, facet_attributes).items()
                    for value in values
                ],
            )
            return record_id

    def replace_index(
        self,
        index_name: str,
        records: Iterable[Mapping[str, Any]],
        facet_attributes: Sequence[str] | None = None,
    ) -> int:
        """Swap the whole content of an index in one transaction."""
        count = 0
        with self._session() as con:
            con.execute("DELETE FROM records WHERE index_name=?", (index_name,))
            for position, record in enumerate(records):
                self.upsert_record(index_name, record, facet_attributes, position=position, connection=con)
                count += 1
        return count

    def delete_record(self, index_name: str, object_id: str) -> None:
        with self._session() as con:
            con.execute("DELETE FROM records WHERE index_name=? AND object_id=?", (index_name, object_id))

    def delete_index(self, index_name: str) -> None:
        """Remove the records and the load bookkeeping, so the dataset is read again next scan."""
        with self._session() as con:
            con.execute("DELETE FROM records WHERE index_name=?", (index_name,))
            con.execute("DELETE FROM datasets WHERE index_name=?", (index_name,))

    # Dataset bookkeeping
    def dataset_mtime(self, path: str) -> Optional[int]:
        with self._session() as con:
            row = con.execute("SELECT mtime_ns FROM datasets WHERE path=?", (path,)).fetchone()
            return int(row[0]) if row else None

    def mark_dataset_loaded(self, path: str, index_name: str, mtime_ns: int, record_count: int) -> None:
        with self._session() as con:
            con.execute(
                """
                INSERT INTO datasets(path, index_name, mtime_ns, record_count, loaded_ts)
                VALUES(?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                  index_name=excluded.index_name,
                  mtime_ns=excluded.mtime_ns,
                  record_count=excluded.record_count,
                  loaded_ts=excluded.loaded_ts
                """,
                (path, index_name, mtime_ns, record_count, int(time.time())),
            )

    # Reads
    def index_names(self) -> List[str]:
        with self._session() as con:
            cur = con.execute("SELECT DISTINCT index_name FROM records ORDER BY index_name")
            return [str(r[0]) for r in cur.fetchall()]

    def count(self, index_name: str) -> int:
        with self._session() as con:
            row = con.execute("SELECT COUNT(*) FROM records WHERE index_name=?", (index_name,)).fetchone()
            return int(row[0]) if row else 0

    def _where(self, index_name: str, query: str, filters: FilterSnapshot) -> Tuple[str, List[object]]:
        where = ["records.index_name=?"]
        params: List[object] = [index_name]

        for token in (query or "").lower().split():
            where.append("records.search_text LIKE ? ESCAPE '\\'")
            params.append(like_pattern(token))

        in_facet = "records.id IN (SELECT record_id FROM facet_values WHERE attribute=? AND value {})"
        for name, group in filters.items():
            values = sorted(group.values)
            if not values:
                continue
            if group.operator is GroupOperator.OR:
                placeholders = ",".join(["?"] * len(values))
                where.append(in_facet.format(f"IN ({placeholders})"))
                params.extend([name, *values])
            else:
                for value in values:
                    where.append(in_facet.format("= ?"))
                    params.extend([name, value])

        return " AND ".join(where), params

    def search(
        self,
        index_name: str,
        query: str,
        filters: FilterSnapshot | None = None,
        facets: Sequence[str] = (),
        page: int = 0,
        hits_per_page: int = 20,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, Dict[str, int]], int]:
        filters = filters if filters is not None else FilterSnapshot()
        q = (query or "").strip().lower()
        where_sql, params = self._where(index_name, q, filters)

        order_sql = "CASE WHEN LOWER(records.title) LIKE ? ESCAPE '\\' THEN 0 ELSE 1 END, records.position" if q else "records.position"
        order_params: List[object] = [like_pattern(q)] if q else []

        with self._session() as con:
            con.execute("PRAGMA query_only=1")
            row = con.execute(f"SELECT COUNT(*) FROM records WHERE {where_sql}", params).fetchone()
            nb_hits = int(row[0]) if row else 0

            cur = con.execute(
                f"SELECT records.body FROM records WHERE {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?",
                (*params, *order_params, hits_per_page, max(0, page) * hits_per_page),
            )
            hits = [json.loads(r[0]) for r in cur.fetchall()]

            # OR attributes are counted without their own group so sibling values keep their counts
            facet_counts: Dict[str, Dict[str, int]] = {}
            for attribute in facets:
                scope = filters.without(attribute) if filters.operator(attribute) is GroupOperator.OR else filters
                f_where, f_params = self._where(index_name, q, scope)
                cur = con.execute(
                    "SELECT facet_values.value, COUNT(*) FROM facet_values "
                    "JOIN records ON records.id = facet_values.record_id "
                    f"WHERE facet_values.attribute=? AND {f_where} "
                    "GROUP BY facet_values.value ORDER BY COUNT(*) DESC, facet_values.value",
                    (attribute, *f_params),
                )
                facet_counts[attribute] = {str(r[0]): int(r[1]) for r in cur.fetchall()}

        return hits, facet_counts, nb_hits
