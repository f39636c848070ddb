# deckscout/database.py

import json
import logging
import os
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from deckscout.config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Key-value store that survives navigation and restarts.

    Values are JSON-encoded and scoped by a namespace (the tracked player
    tag), so runs for different players never see each other's progress.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, namespace: str = "default"):
        self.db_path = self._resolve_db_path(db_path)
        self.namespace = namespace
        self.conn = None
        self.init_database()

    @staticmethod
    def _resolve_db_path(db_path: str) -> str:
        """Return an absolute database path anchored to project root when relative."""
        if db_path == ":memory:":
            return db_path
        path = Path(db_path)
        if path.is_absolute():
            return str(path)

        project_root = Path(__file__).resolve().parents[1]
        return str(project_root / path)

    def init_database(self):
        """Create tables if they don't exist."""
        try:
            db_dir = os.path.dirname(self.db_path)
            if db_dir:
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except OSError as e:
                    raise RuntimeError(f"Failed to create database directory '{db_dir}': {e}")

            self.conn = sqlite3.connect(self.db_path, timeout=30.0)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA busy_timeout = 30000")
            self._set_wal_mode_best_effort()

            cursor = self.conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS session_store (
                    namespace   TEXT NOT NULL,
                    key         TEXT NOT NULL,
                    value       TEXT NOT NULL,
                    updated_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (namespace, key)
                )
            """)
            self._commit_with_retry(context="create tables")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to initialize session store at {self.db_path}: {e}")

    def _commit_with_retry(self, retries: int = 8, delay_seconds: float = 0.25, context: str = "commit") -> None:
        """
        Retry commit on transient SQLITE_BUSY/locked errors.
        """
        last_error = None
        for attempt in range(retries):
            try:
                self.conn.commit()
                return
            except sqlite3.OperationalError as e:
                last_error = e
                if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                    raise
                if attempt == retries - 1:
                    break
                time.sleep(delay_seconds)
        raise RuntimeError(
            f"Failed to {context}: database remained locked after {retries} attempts ({last_error})"
        )

    def _set_wal_mode_best_effort(self, retries: int = 5, delay_seconds: float = 0.2) -> None:
        """Try to enable WAL without failing startup if the DB is temporarily locked."""
        if self.db_path == ":memory:":
            return
        for attempt in range(retries):
            try:
                self.conn.execute("PRAGMA journal_mode = WAL")
                return
            except sqlite3.OperationalError as e:
                msg = str(e).lower()
                if "locked" not in msg and "busy" not in msg:
                    raise
                if attempt == retries - 1:
                    logger.warning("Could not enable WAL mode (database locked); continuing. (%s)", e)
                    return
                time.sleep(delay_seconds)

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO session_store (namespace, key, value, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(namespace, key)
            DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
            """,
            (self.namespace, key, payload),
        )
        self._commit_with_retry(context=f"store '{key}'")

    def get(self, key: str, default: Any = None) -> Any:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT value FROM session_store WHERE namespace = ? AND key = ? LIMIT 1",
            (self.namespace, key),
        )
        row = cursor.fetchone()
        if not row:
            return default
        try:
            return json.loads(row["value"])
        except (TypeError, json.JSONDecodeError):
            logger.warning("Bad JSON for session key %s/%s; ignoring stored value", self.namespace, key)
            return default

    def remove(self, key: str) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM session_store WHERE namespace = ? AND key = ?",
            (self.namespace, key),
        )
        self._commit_with_retry(context=f"remove '{key}'")

    def clear(self, keys: Optional[List[str]] = None) -> None:
        """Remove the given keys, or every key in this namespace."""
        cursor = self.conn.cursor()
        if keys is None:
            cursor.execute("DELETE FROM session_store WHERE namespace = ?", (self.namespace,))
        else:
            cursor.executemany(
                "DELETE FROM session_store WHERE namespace = ? AND key = ?",
                [(self.namespace, key) for key in keys],
            )
        self._commit_with_retry(context="clear session keys")

    def items(self) -> Dict[str, Any]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT key, value FROM session_store WHERE namespace = ? ORDER BY key",
            (self.namespace,),
        )
        out: Dict[str, Any] = {}
        for row in cursor.fetchall():
            try:
                out[row["key"]] = json.loads(row["value"])
            except (TypeError, json.JSONDecodeError):
                continue
        return out

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
