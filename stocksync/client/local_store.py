"""SQLite-backed key/value persistence for collections and the session."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SESSION_USER_KEY = "current_user"
DEVICE_ID_KEY = "device_id"


class LocalStore:
    """Whole-value persistence keyed by collection name.

    Reads never raise: a missing, corrupt or unreadable value yields the
    caller's default.  Writes report success as a boolean so the caller can
    fall back to memory-only operation.
    """

    def __init__(self, db_path: Path | str, key_prefix: str = "smartstock_") -> None:
        self.db_path = Path(db_path)
        self.key_prefix = key_prefix
        self._initialized = False

    def initialize(self) -> bool:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS session_store (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL
                    )
                    """
                )
        except (sqlite3.Error, OSError) as exc:
            logger.error("Local store at %s is unavailable: %s", self.db_path, exc)
            return False
        self._initialized = True
        return True

    def storage_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def load(self, key: str, default: T) -> T:
        return self._read("kv_store", self.storage_key(key), default)

    def save(self, key: str, value: Any) -> bool:
        return self._write("kv_store", self.storage_key(key), value)

    def clear(self, key: str) -> None:
        self._delete("kv_store", self.storage_key(key))

    def clear_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.clear(key)

    def load_session(self, default: T = None) -> T:  # type: ignore[assignment]
        return self._read("session_store", SESSION_USER_KEY, default)

    def save_session(self, value: Any) -> bool:
        return self._write("session_store", SESSION_USER_KEY, value)

    def clear_session(self) -> None:
        self._delete("session_store", SESSION_USER_KEY)

    def device_id(self) -> str:
        """Stable identifier of this device, created on first use.

        Kept in the session table so clearing local data does not change it.
        When storage is unavailable a fresh id is returned each call.
        """

        stored = self._read("session_store", DEVICE_ID_KEY, None)
        if isinstance(stored, str) and stored:
            return stored
        device_id = uuid.uuid4().hex
        self._write("session_store", DEVICE_ID_KEY, device_id)
        return device_id

    def _read(self, table: str, key: str, default: T) -> T:
        if not self._ready():
            return default
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT value_json FROM {table} WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error loading %s from storage: %s", key, exc)
            return default
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except ValueError as exc:
            logger.error("Stored value for %s is corrupt: %s", key, exc)
            return default

    def _write(self, table: str, key: str, value: Any) -> bool:
        if not self._ready():
            return False
        try:
            payload = json.dumps(value, sort_keys=True)
        except (TypeError, ValueError) as exc:
            logger.error("Error serializing %s for storage: %s", key, exc)
            return False
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO {table} (key, value_json) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json",
                    (key, payload),
                )
        except sqlite3.Error as exc:
            logger.error("Error saving %s to storage: %s", key, exc)
            return False
        return True

    def _delete(self, table: str, key: str) -> None:
        if not self._ready():
            return
        try:
            with self._connect() as conn:
                conn.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            logger.error("Error clearing %s: %s", key, exc)

    def _ready(self) -> bool:
        return self._initialized or self.initialize()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self.db_path)) as conn:
            with conn:
                yield conn
