from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

DEFAULT_DB_PATH = Path.home() / ".mnemosyne" / "memory.db"

TABLES = ("user_profile", "entities", "events", "entity_relations")

logger = logging.getLogger(__name__)


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS user_profile (
            user_id TEXT NOT NULL DEFAULT 'default',
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            category TEXT,
            updated_at TEXT NOT NULL,
            confidence REAL DEFAULT 1.0,
            deleted INTEGER DEFAULT 0,
            tags TEXT,
            PRIMARY KEY (user_id, key)
        );

        CREATE TABLE IF NOT EXISTS entities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default',
            entity_type TEXT NOT NULL,
            name TEXT,
            attributes TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            status TEXT DEFAULT 'active',
            deleted INTEGER DEFAULT 0,
            tags TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_entities_user_type ON entities(user_id, entity_type);

        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default',
            event_type TEXT NOT NULL,
            description TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            related_entity_ids TEXT,
            metadata TEXT,
            importance REAL DEFAULT 0.5,
            deleted INTEGER DEFAULT 0,
            tags TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_events_user_time ON events(user_id, timestamp);

        CREATE TABLE IF NOT EXISTS entity_relations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default',
            entity_id_1 INTEGER NOT NULL,
            entity_id_2 INTEGER NOT NULL,
            relation_type TEXT NOT NULL,
            created_at TEXT NOT NULL,
            deleted INTEGER DEFAULT 0,
            FOREIGN KEY (entity_id_1) REFERENCES entities(id),
            FOREIGN KEY (entity_id_2) REFERENCES entities(id)
        );
        """
    )
    for table in TABLES:
        _ensure_column(conn, table, "deleted", "INTEGER DEFAULT 0")
    for table in ("user_profile", "entities", "events"):
        _ensure_column(conn, table, "tags", "TEXT")
    conn.commit()


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, column_type: str) -> None:
    existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
    if column in existing:
        return
    logger.info("adding %s column to %s", column, table)
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")


def to_json(data: Any) -> str | None:
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False)


def from_json(text: str | None) -> Any:
    """Decode a stored JSON column; malformed text decodes to ``None``."""
    if text is None or text == "":
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
