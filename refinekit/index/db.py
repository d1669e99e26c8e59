from __future__ import annotations

import sqlite3
from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "RefineKit"
APP_AUTHOR = "RefineKit"
DATA_DIR = Path(user_data_dir(APP_NAME, APP_AUTHOR))
DB_PATH = DATA_DIR / "refinekit.db"


def ensure_data_dir(db_path: Path | str = DB_PATH) -> None:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def connect(db_path: Path | str = DB_PATH) -> sqlite3.Connection:
    ensure_data_dir(db_path)
    # Sessions execute searches on a worker thread
    con = sqlite3.connect(str(db_path), check_same_thread=False)
    con.row_factory = sqlite3.Row
    # PRAGMAs tuned for desktop app speed
    pragmas = [
        ("journal_mode", "WAL"),
        ("synchronous", "NORMAL"),
        ("temp_store", "MEMORY"),
        ("foreign_keys", 1),
    ]
    cur = con.cursor()
    for key, value in pragmas:
        cur.execute(f"PRAGMA {key}={value}")
    cur.close()
    return con


def initialize(db_path: Path | str = DB_PATH) -> None:
    schema_path = Path(__file__).with_name("schema.sql")
    con = connect(db_path)
    try:
        with con:
            con.executescript(schema_path.read_text(encoding="utf-8"))
    finally:
        con.close()
