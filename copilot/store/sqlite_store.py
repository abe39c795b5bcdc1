"""SQLite-backed key/value store — survives restarts.

Values are stored as JSON text alongside an optional absolute expiry
timestamp.  Expired rows are treated as absent and removed lazily.
"""

import json
import pathlib
import sqlite3
import time
from typing import Any, Callable, Optional

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    expires_at REAL
)
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with row-factory enabled.

    Callers are responsible for closing the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


class SqliteStore:
    """Data access layer for the ``kv_store`` table.

    Args:
        db_path: Path to the SQLite database file.  Parent directories are
            created on first use.
        clock: Returns the current time in seconds.
    """

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time) -> None:
        self._db_path = db_path
        self._clock = clock
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = get_connection(db_path)
        try:
            conn.execute(_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Optional[Any]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT value, expires_at FROM kv_store WHERE key = ?", (key,),
            ).fetchone()
            if row is None:
                return None
            if row["expires_at"] is not None and self._clock() >= row["expires_at"]:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
                return None
            return json.loads(row["value"])
        finally:
            conn.close()

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at
                """,
                (key, json.dumps(value), expires_at),
            )
            conn.commit()
        finally:
            conn.close()

    def expire(self, key: str, ttl_seconds: float) -> bool:
        if self.get(key) is None:
            return False
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE kv_store SET expires_at = ? WHERE key = ?",
                (self._clock() + ttl_seconds, key),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()
