"""SQLite key-value store for FlowDay."""

import sqlite3
import json
import os
from pathlib import Path
from typing import Optional, Any

ENV_DATA_DIR = "FLOWDAY_DATA_DIR"

APP_DATA_KEY = "FLOWDAY_APP_DATA"
LEGACY_NODES_KEY = "FLOWDAY_NODES"


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get(ENV_DATA_DIR)
    if override:
        data_dir = Path(override).expanduser()
    else:
        data_dir = Path.home() / ".local" / "share" / "flowday"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "flowday.db"


class Database:
    """Key-value storage backed by a single SQLite file.

    `kv_store` holds raw text blobs (the persisted app record), `settings`
    holds JSON-encoded application preferences.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()

        cursor.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON
            );
        """)

        self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # ==================== Key-Value Operations ====================

    def get_item(self, key: str) -> Optional[str]:
        """Return the raw value stored under key, or None."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return None
        return row["value"]

    def set_item(self, key: str, value: str):
        """Store a raw value under key, replacing any previous one."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
            (key, value)
        )
        self.conn.commit()

    def remove_item(self, key: str):
        """Remove key if present."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()
