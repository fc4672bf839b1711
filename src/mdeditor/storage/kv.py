"""Key-value backing stores for editor persistence."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Protocol


class KeyValueStore(Protocol):
    """Minimal text key-value contract used by the document store."""

    def get(self, key: str) -> str | None:
        """Return the stored value or None."""

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite a value."""

    def delete(self, key: str) -> None:
        """Remove a key if present."""


class InMemoryKeyValueStore:
    """Deterministic store used for tests and local prototyping."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqliteKeyValueStore:
    """Local SQLite key-value persistence, one row per key.

    Each write is its own transaction; concurrent writers sharing the file are
    not coordinated and the last write wins.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        _ensure_kv_table(self._path)

    def get(self, key: str) -> str | None:
        with sqlite3.connect(self._path) as conn:
            cur = conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with sqlite3.connect(self._path) as conn:
            conn.execute(
                "INSERT INTO kv(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with sqlite3.connect(self._path) as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()


def _ensure_kv_table(db_path: Path) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        conn.commit()
