"""Key-value byte stores that hold the persisted collections."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from .errors import PersistenceError

SCHEMA_VERSION = 1

CARDS_KEY = "SavedFlashCards"
DECKS_KEY = "SavedDecks"
CARD_STATUS_KEY = "CardStatuses"


class PersistenceGateway(Protocol):
    """Byte store supplied by the host application."""

    def load(self, key: str) -> bytes | None:
        """Return the stored payload, or None when nothing was ever saved."""
        ...

    def save(self, key: str, payload: bytes) -> bool:
        """Store a payload; return False or raise PersistenceError on failure."""
        ...


class MemoryGateway:
    """Dictionary-backed gateway for embedding and tests."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(initial or {})

    def load(self, key: str) -> bytes | None:
        return self.data.get(key)

    def save(self, key: str, payload: bytes) -> bool:
        self.data[key] = bytes(payload)
        return True

    def close(self) -> None:
        """Nothing to release."""


class SqliteGateway:
    """Single-table SQLite key-value store."""

    def __init__(self, db_path: Path | str) -> None:
        """Open the database and bring its schema up to date."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise PersistenceError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the records table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    payload BLOB NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def load(self, key: str) -> bytes | None:
        try:
            row = self._conn.execute("SELECT payload FROM records WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read '{key}': {exc}") from exc
        if row is None:
            return None
        return bytes(row["payload"])

    def save(self, key: str, payload: bytes) -> bool:
        now = datetime.now(UTC).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO records (key, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(payload), now),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not write '{key}': {exc}") from exc
        return True

    def keys(self) -> list[str]:
        """Return stored keys ordered by name."""
        rows = self._conn.execute("SELECT key FROM records ORDER BY key").fetchall()
        return [str(row["key"]) for row in rows]

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass
