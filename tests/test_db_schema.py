from __future__ import annotations

import sqlite3
from pathlib import Path

from mnemosyne import db
from mnemosyne.store import MemoryStore


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def test_initialize_schema_creates_tables(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "memory.db")
    try:
        db.initialize_schema(conn)
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        for table in db.TABLES:
            assert table in tables
            assert "deleted" in _columns(conn, table)
        assert "tags" in _columns(conn, "events")
    finally:
        conn.close()


def test_initialize_schema_is_idempotent(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "memory.db")
    try:
        db.initialize_schema(conn)
        conn.execute(
            "INSERT INTO user_profile (user_id, key, value, updated_at) VALUES (?, ?, ?, ?)",
            ("default", "city", "Oslo", "2024-01-01T00:00:00.000000+00:00"),
        )
        conn.commit()
        db.initialize_schema(conn)
        rows = conn.execute("SELECT key, value FROM user_profile").fetchall()
    finally:
        conn.close()

    assert [tuple(row) for row in rows] == [("city", "Oslo")]


def test_legacy_tables_gain_deleted_column(tmp_path: Path) -> None:
    path = tmp_path / "memory.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE user_profile (
            user_id TEXT NOT NULL DEFAULT 'default',
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            category TEXT,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            confidence REAL DEFAULT 1.0,
            PRIMARY KEY (user_id, key)
        );
        CREATE TABLE events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default',
            event_type TEXT NOT NULL,
            description TEXT NOT NULL,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            related_entity_ids TEXT,
            metadata TEXT,
            importance REAL DEFAULT 0.5
        );
        INSERT INTO user_profile (user_id, key, value) VALUES ('default', 'pet', 'cat');
        """
    )
    conn.commit()
    conn.close()

    store = MemoryStore(path)
    try:
        assert "deleted" in _columns(store.conn, "user_profile")
        assert "deleted" in _columns(store.conn, "events")
        assert "tags" in _columns(store.conn, "user_profile")
        records = store.query_attributes()
    finally:
        store.close()

    assert [record["key"] for record in records] == ["pet"]
    assert records[0]["tags"] == []


def test_json_helpers_round_trip_and_tolerate_garbage() -> None:
    assert db.to_json(None) is None
    assert db.from_json(db.to_json({"name": "Mochi"})) == {"name": "Mochi"}
    assert db.from_json("") is None
    assert db.from_json("{broken") is None
