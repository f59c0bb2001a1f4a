# src/sd_workflow/storage/snapshot_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..core.errors import ParseFailure

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Offline persistence: one JSON document per key in a single SQLite table
    (the local store keeps the whole task list under one key, the projects
    under another).

    Every call opens and closes its own connection, so the store can be used
    from any thread.
    """

    def __init__(self, db_path: str | Path = "snapshots.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SnapshotStore ready db=%s keys=%s", self._db_path, len(self.keys()))

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL DEFAULT 'null',
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _decode(key: str, raw: str | None) -> Any:
        if raw is None:
            raise ParseFailure(f"Snapshot {key!r} is empty.")
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Snapshot {key!r} is not valid JSON: {e}") from e

    # ---- public API ----

    def load(self, key: str, default: Any = None) -> Any:
        """
        Return the stored value for key.

        Missing key -> default. Malformed JSON (or a stored null) -> default,
        logged as ParseFailure and never raised.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT value FROM snapshots WHERE key = ?", (key,))
            row = cur.fetchone()
        finally:
            conn.close()

        if row is None:
            return default
        try:
            value = self._decode(key, row["value"])
        except ParseFailure as e:
            logger.warning("%s Falling back to default.", e.message)
            return default
        return default if value is None else value

    def save(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        now = time.time()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO snapshots(key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, payload, now),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Snapshot saved key=%s bytes=%d", key, len(payload))

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT key FROM snapshots ORDER BY key ASC")
            return [str(r["key"]) for r in cur.fetchall()]
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM snapshots WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()
