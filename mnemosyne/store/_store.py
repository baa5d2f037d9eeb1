from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .. import db
from ..errors import StorageError
from . import attributes as store_attributes
from . import entities as store_entities
from . import events as store_events
from . import tags as store_tags
from .types import (
    AttributeRecord,
    ChangeResult,
    EntityRecord,
    EventRecord,
    TagResult,
    UpsertResult,
)

logger = logging.getLogger(__name__)

WriteHook = Callable[["MemoryStore"], None]


class MemoryStore:
    """Attributes, entities and events for one user, persisted in SQLite."""

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        user_id: str = "default",
        *,
        hooks: Iterable[WriteHook] = (),
        check_same_thread: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        self.user_id = user_id or "default"
        self.hooks: list[WriteHook] = list(hooks)
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
            db.initialize_schema(self.conn)
        except sqlite3.Error as exc:
            raise StorageError(f"failed to open database {self.db_path}: {exc}") from exc
        logger.debug("opened memory store %s for user %s", self.db_path, self.user_id)

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def add_hook(self, hook: WriteHook) -> None:
        self.hooks.append(hook)

    @contextmanager
    def write(self) -> Iterator[sqlite3.Connection]:
        """Run a mutation; commit on success, roll back on failure, then notify hooks."""
        try:
            yield self.conn
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StorageError(str(exc)) from exc
        except BaseException:
            self.conn.rollback()
            raise
        self._run_hooks()

    def read(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def _run_hooks(self) -> None:
        for hook in list(self.hooks):
            try:
                hook(self)
            except Exception as exc:
                logger.warning("post-write hook %r failed", hook, exc_info=exc)

    def checkpoint(self) -> None:
        """Fold the WAL into the main database file."""
        try:
            self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def close(self) -> None:
        self.conn.close()

    # Attributes

    def update_attribute(
        self,
        key: str,
        value: str,
        category: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> UpsertResult:
        return store_attributes.update_attribute(self, key, value, category, tags=tags)

    def query_attributes(
        self, keys: Iterable[str] | None = None, category: str | None = None
    ) -> list[AttributeRecord]:
        return store_attributes.query_attributes(self, keys, category)

    def delete_attribute(self, key: str) -> ChangeResult:
        return store_attributes.delete_attribute(self, key)

    def search_attributes_by_keywords(
        self,
        keywords: Iterable[str],
        category: str | None = None,
        match_mode: str = "any",
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        return store_attributes.search_attributes_by_keywords(
            self, keywords, category, match_mode, limit
        )

    # Entities

    def create_entity(
        self,
        entity_type: str,
        name: str | None = None,
        attributes: Any = None,
        tags: Iterable[str] | None = None,
    ) -> int:
        return store_entities.create_entity(self, entity_type, name, attributes, tags=tags)

    def update_entity(
        self,
        entity_id: int,
        name: str | None = None,
        attributes: Any = None,
        status: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> ChangeResult:
        return store_entities.update_entity(self, entity_id, name, attributes, status, tags=tags)

    def list_entities(
        self, entity_type: str | None = None, status: str | None = "active"
    ) -> list[EntityRecord]:
        return store_entities.list_entities(self, entity_type, status)

    def delete_entity(self, entity_id: int) -> ChangeResult:
        return store_entities.delete_entity(self, entity_id)

    def search_entities_by_keywords(
        self,
        keywords: Iterable[str],
        entity_type: str | None = None,
        search_fields: Iterable[str] | None = ("all",),
        match_mode: str = "any",
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        return store_entities.search_entities_by_keywords(
            self, keywords, entity_type, search_fields, match_mode, limit
        )

    # Events

    def add_event(
        self,
        event_type: str,
        description: str,
        related_entity_ids: Iterable[int] | None = None,
        metadata: Any = None,
        timestamp: Any = None,
        importance: float = 0.5,
        tags: Iterable[str] | None = None,
    ) -> int:
        return store_events.add_event(
            self,
            event_type,
            description,
            related_entity_ids,
            metadata,
            timestamp,
            importance,
            tags=tags,
        )

    def search_events(
        self,
        query: str | None = None,
        keywords: Iterable[str] | None = None,
        event_type: str | None = None,
        time_range: str | None = None,
        limit: int = 20,
        match_mode: str = "any",
    ) -> list[dict[str, Any]]:
        return store_events.search_events(
            self, query, keywords, event_type, time_range, limit, match_mode
        )

    def search_events_by_keywords(
        self,
        keywords: Iterable[str],
        event_type: str | None = None,
        time_range: str | None = None,
        limit: int = 20,
        match_mode: str = "any",
    ) -> list[dict[str, Any]]:
        return store_events.search_events_by_keywords(
            self, keywords, event_type, time_range, limit, match_mode
        )

    def query_entity_timeline(self, entity_id: int, limit: int = 10) -> list[EventRecord]:
        return store_events.query_entity_timeline(self, entity_id, limit)

    def delete_event(self, event_id: int) -> ChangeResult:
        return store_events.delete_event(self, event_id)

    # Tags

    def add_tags_to_attribute(self, key: str, tags: Iterable[str]) -> TagResult:
        return store_tags.add_tags(self, "attribute", key, tags)

    def remove_tags_from_attribute(self, key: str, tags: Iterable[str]) -> TagResult:
        return store_tags.remove_tags(self, "attribute", key, tags)

    def add_tags_to_entity(self, entity_id: int, tags: Iterable[str]) -> TagResult:
        return store_tags.add_tags(self, "entity", entity_id, tags)

    def remove_tags_from_entity(self, entity_id: int, tags: Iterable[str]) -> TagResult:
        return store_tags.remove_tags(self, "entity", entity_id, tags)

    def add_tags_to_event(self, event_id: int, tags: Iterable[str]) -> TagResult:
        return store_tags.add_tags(self, "event", event_id, tags)

    def remove_tags_from_event(self, event_id: int, tags: Iterable[str]) -> TagResult:
        return store_tags.remove_tags(self, "event", event_id, tags)

    # Stats

    def stats(self) -> dict[str, Any]:
        def count(sql: str) -> int:
            row = self.read(sql, (self.user_id,))
            return int(row[0][0]) if row else 0

        size_bytes = self.db_path.stat().st_size if self.db_path.exists() else 0
        return {
            "path": str(self.db_path),
            "size_bytes": size_bytes,
            "user_id": self.user_id,
            "attributes": count(
                "SELECT COUNT(*) FROM user_profile WHERE user_id = ? AND deleted = 0"
            ),
            "entities": count("SELECT COUNT(*) FROM entities WHERE user_id = ? AND deleted = 0"),
            "active_entities": count(
                "SELECT COUNT(*) FROM entities WHERE user_id = ? AND deleted = 0 "
                "AND COALESCE(status, 'active') = 'active'"
            ),
            "events": count("SELECT COUNT(*) FROM events WHERE user_id = ? AND deleted = 0"),
        }
