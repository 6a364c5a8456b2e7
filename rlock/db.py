import re
import sqlite3
from pathlib import Path

from .config import settings
from .errors import LockConfigError
from .utils import now_utc_iso

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

def check_table_name(table: str) -> str:
    # Table names are interpolated into SQL, so only plain identifiers pass.
    if not table or not _TABLE_RE.match(table):
        raise LockConfigError(f"invalid lock table name: {table!r}")
    return table

def get_conn(db_path: str | None = None, busy_timeout: float | None = None) -> sqlite3.Connection:
    db_path = db_path or settings.db_path
    if busy_timeout is None:
        busy_timeout = settings.busy_timeout_seconds
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        db_path,
        isolation_level=None,  # autocommit: every statement is its own transaction
        timeout=busy_timeout,
        check_same_thread=False,
    )
    conn.execute("PRAGMA journal_mode=WAL;")
    return conn

def lock_table_ddl(table: str) -> list[str]:
    table = check_table_name(table)
    return [
        f"""
CREATE TABLE IF NOT EXISTS {table} (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  owner TEXT NOT NULL,
  in_use INTEGER NOT NULL DEFAULT 0,
  last_error TEXT NOT NULL DEFAULT '',
  last_used TEXT NOT NULL,
  created_at TEXT NOT NULL
);
""",
        f"CREATE UNIQUE INDEX IF NOT EXISTS ux_{table}_name ON {table}(name);",
    ]

def migrate(conn: sqlite3.Connection, table: str | None = None):
    """Create the lock table, or bring a table from an older layout up to date.

    Rows from an older layout get ``last_used``/``created_at`` stamped with the
    migration time, so their holders keep a full staleness window.
    """
    table = check_table_name(table or settings.table_name)
    cur = conn.cursor()
    cols = {row[1] for row in cur.execute(f"PRAGMA table_info({table})").fetchall()}
    if cols:
        stamp = now_utc_iso()
        if "in_use" not in cols:
            cur.execute(f"ALTER TABLE {table} ADD COLUMN in_use INTEGER NOT NULL DEFAULT 0")
        if "last_error" not in cols:
            cur.execute(f"ALTER TABLE {table} ADD COLUMN last_error TEXT NOT NULL DEFAULT ''")
        for col in ("last_used", "created_at"):
            if col not in cols:
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {col} TEXT NOT NULL DEFAULT ''")
                cur.execute(f"UPDATE {table} SET {col}=? WHERE {col}=''", (stamp,))
    for stmt in lock_table_ddl(table):
        cur.execute(stmt)
