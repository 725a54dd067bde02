"""
SiteCheck Storage — Key-Value Adapters

Every value is stored as JSON text under a string key. Reads never raise
for bad data: a missing or unparseable value returns the caller's default.
"""
import datetime
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Union

logger = logging.getLogger("storage.kv")


def _ts() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class KeyValueStore:
    """Persistence port: get(key, default) / set(key, value)."""

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._read(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"[KV] unparseable value for '{key}', using default")
            return default

    def set(self, key: str, value: Any) -> None:
        self._write(key, json.dumps(value))

    def _read(self, key: str):
        raise NotImplementedError

    def _write(self, key: str, raw: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Holds raw JSON text so bad data behaves like disk."""

    def __init__(self, initial: Dict[str, str] = None):
        self.raw: Dict[str, str] = dict(initial or {})

    def _read(self, key: str):
        return self.raw.get(key)

    def _write(self, key: str, raw: str) -> None:
        self.raw[key] = raw


class SqliteKeyValueStore(KeyValueStore):
    """Single-table SQLite store; survives process restarts."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        self._init_schema()

    def _get_conn(self):
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self):
        conn = self._get_conn()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT
            )
        """)
        conn.commit()
        conn.close()

    def _read(self, key: str):
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.DatabaseError as e:
            logger.warning(f"[KV] read failed for '{key}': {e}")
            row = None
        finally:
            conn.close()
        return row["value"] if row else None

    def _write(self, key: str, raw: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("""
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """, (key, raw, _ts()))
            conn.commit()
        finally:
            conn.close()

    def write_raw(self, key: str, raw: str) -> None:
        """Store text as-is (used to simulate corrupted values)."""
        self._write(key, raw)
