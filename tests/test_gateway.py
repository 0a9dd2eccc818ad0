import sqlite3
from pathlib import Path

import pytest

from flashdeck.errors import PersistenceError
from flashdeck.gateway import CARDS_KEY, DECKS_KEY, MemoryGateway, SqliteGateway


def test_memory_gateway_round_trip() -> None:
    gateway = MemoryGateway({DECKS_KEY: b"[]"})
    assert gateway.load(CARDS_KEY) is None
    assert gateway.load(DECKS_KEY) == b"[]"

    assert gateway.save(CARDS_KEY, bytearray(b"{}")) is True
    assert gateway.data[CARDS_KEY] == b"{}"
    assert isinstance(gateway.data[CARDS_KEY], bytes)


def test_sqlite_gateway_round_trip_and_overwrite() -> None:
    gateway = SqliteGateway(":memory:")
    assert gateway.load(CARDS_KEY) is None

    assert gateway.save(CARDS_KEY, b'{"v": 1}') is True
    assert gateway.save(CARDS_KEY, b'{"v": 2}') is True
    gateway.save(DECKS_KEY, b"[]")

    assert gateway.load(CARDS_KEY) == b'{"v": 2}'
    assert gateway.keys() == sorted([CARDS_KEY, DECKS_KEY])


def test_migration_sets_user_version_and_schema_history() -> None:
    gateway = SqliteGateway(":memory:")
    version = int(gateway._conn.execute("PRAGMA user_version").fetchone()[0])  # noqa: SLF001
    assert version == 1
    rows = gateway._conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()  # noqa: SLF001
    assert [int(row["version"]) for row in rows] == [1]


def test_sqlite_gateway_persists_across_connections(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "store.db"
    first = SqliteGateway(db_path)
    first.save(CARDS_KEY, b"payload")
    first.close()

    second = SqliteGateway(db_path)
    try:
        assert second.load(CARDS_KEY) == b"payload"
    finally:
        second.close()


def test_newer_database_schema_is_rejected(tmp_path: Path) -> None:
    db_path = tmp_path / "future.db"
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA user_version = 99")
    conn.close()

    with pytest.raises(PersistenceError):
        SqliteGateway(db_path)


def test_closed_connection_raises_persistence_error() -> None:
    gateway = SqliteGateway(":memory:")
    gateway.close()

    with pytest.raises(PersistenceError):
        gateway.load(CARDS_KEY)
    with pytest.raises(PersistenceError):
        gateway.save(CARDS_KEY, b"x")
