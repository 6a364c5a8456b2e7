from __future__ import annotations

import sqlite3

from .config import settings
from .db import check_table_name
from .errors import LockStoreError
from .models import LockEntry
from .utils import now_utc_iso


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    errname = getattr(exc, "sqlite_errorname", None)
    if errname:
        return errname in ("SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY")
    return "UNIQUE constraint failed" in str(exc)


class LockStore:
    """Data access for the lock table.

    Every mutating method is a single statement, so the predicate and the
    write are applied atomically by SQLite. Methods that update return the
    number of rows touched and leave judging it to the caller.
    """

    def __init__(self, conn: sqlite3.Connection, table: str | None = None):
        self.conn = conn
        self.table = check_table_name(table or settings.table_name)

    def insert(self, name: str, owner: str) -> bool:
        """Insert a held lock row. False when the name already exists."""
        stamp = now_utc_iso()
        try:
            self.conn.execute(
                f"INSERT INTO {self.table}(name, owner, in_use, last_error, last_used, created_at) "
                "VALUES(?, ?, 1, '', ?, ?)",
                (name, owner, stamp, stamp),
            )
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                return False
            raise LockStoreError(f"unable to insert lock for '{name}': {exc}", operation="insert", name=name) from exc
        except sqlite3.Error as exc:
            raise LockStoreError(f"unable to insert lock for '{name}': {exc}", operation="insert", name=name) from exc
        return True

    def get_by_name(self, name: str) -> LockEntry | None:
        try:
            row = self.conn.execute(
                f"SELECT rowid, name, owner, in_use, last_error, last_used, created_at FROM {self.table} WHERE name=?",
                (name,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise LockStoreError(f"unable to fetch existing lock '{name}': {exc}", operation="fetch", name=name) from exc
        return LockEntry.from_row(row) if row else None

    def update_owner(self, name: str, observed_owner: str, new_owner: str, *, require_free: bool) -> int:
        """Hand the row to ``new_owner`` if ``observed_owner`` still holds the name.

        With ``require_free`` the row must also have been released.
        """
        query = f"UPDATE {self.table} SET owner=?, in_use=1, last_used=? WHERE name=? AND owner=?"
        if require_free:
            query += " AND in_use=0"
        try:
            cur = self.conn.execute(query, (new_owner, now_utc_iso(), name, observed_owner))
        except sqlite3.Error as exc:
            raise LockStoreError(f"unable to take over '{name}': {exc}", operation="takeover", name=name) from exc
        return cur.rowcount

    def release(self, name: str, owner: str, last_error: str) -> int:
        try:
            cur = self.conn.execute(
                f"UPDATE {self.table} SET in_use=0, last_error=?, last_used=? WHERE name=? AND owner=?",
                (last_error, now_utc_iso(), name, owner),
            )
        except sqlite3.Error as exc:
            raise LockStoreError(f"unable to unlock '{name}': {exc}", operation="unlock", name=name) from exc
        return cur.rowcount

    def get_last_error(self, name: str, owner: str) -> str | None:
        """``last_error`` of the row held by ``owner``; None when there is no such row."""
        try:
            row = self.conn.execute(
                f"SELECT last_error FROM {self.table} WHERE name=? AND owner=?",
                (name, owner),
            ).fetchone()
        except sqlite3.Error as exc:
            raise LockStoreError(f"unable to read last error for '{name}': {exc}", operation="last_error", name=name) from exc
        if row is None:
            return None
        return row[0] or ""
