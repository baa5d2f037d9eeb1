from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .. import db
from ..errors import InvalidArgumentError
from ..kinds import validate_event_type, validate_importance, validate_limit, validate_match_mode
from ..time_range import parse_time_range
from . import search as store_search
from .types import ChangeResult, EventRecord
from .utils import (
    contains_entity_id,
    decode_entity_ids,
    decode_tags,
    format_timestamp,
    normalize_tags,
    normalize_timestamp,
)

if TYPE_CHECKING:
    from ._store import MemoryStore

EVENT_COLUMNS = (
    "id, event_type, description, related_entity_ids, metadata, timestamp, importance, tags"
)


def _decode_event(row: sqlite3.Row) -> EventRecord:
    return {
        "id": row["id"],
        "event_type": row["event_type"],
        "description": row["description"],
        "related_entity_ids": decode_entity_ids(row["related_entity_ids"]),
        "metadata": db.from_json(row["metadata"]),
        "timestamp": row["timestamp"],
        "importance": row["importance"],
        "tags": decode_tags(row["tags"]),
    }


def _entity_ids(values: Iterable[int] | None) -> list[int] | None:
    if values is None:
        return None
    ids: list[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"Invalid related entity id {value!r}. Expected integers")
        ids.append(value)
    return ids


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _filter_clauses(
    store: MemoryStore, event_type: str | None, time_range: str | None
) -> tuple[list[str], list[Any]]:
    where = ["user_id = ?", "deleted = 0"]
    params: list[Any] = [store.user_id]
    if event_type:
        where.append("event_type = ?")
        params.append(validate_event_type(event_type))
    if time_range:
        window = parse_time_range(time_range)
        where.append("timestamp >= ? AND timestamp < ?")
        params.extend([format_timestamp(window.start), format_timestamp(window.end)])
    return where, params


def add_event(
    store: MemoryStore,
    event_type: str,
    description: str,
    related_entity_ids: Iterable[int] | None = None,
    metadata: Any = None,
    timestamp: Any = None,
    importance: float = 0.5,
    *,
    tags: Iterable[str] | None = None,
) -> int:
    event_type = validate_event_type(event_type)
    if not isinstance(description, str) or not description.strip():
        raise InvalidArgumentError("Event description must be a non-empty string")
    importance = validate_importance(importance)
    ids = _entity_ids(related_entity_ids)
    with store.write() as conn:
        cur = conn.execute(
            """
            INSERT INTO events (
                user_id, event_type, description, related_entity_ids, metadata,
                timestamp, importance, deleted, tags
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)
            """,
            (
                store.user_id,
                event_type,
                description,
                db.to_json(ids),
                db.to_json(metadata),
                normalize_timestamp(timestamp),
                importance,
                db.to_json(normalize_tags(tags)) if tags is not None else None,
            ),
        )
    if cur.lastrowid is None:
        raise RuntimeError("Failed to create event")
    return int(cur.lastrowid)


def search_events(
    store: MemoryStore,
    query: str | None = None,
    keywords: Iterable[str] | None = None,
    event_type: str | None = None,
    time_range: str | None = None,
    limit: int = 20,
    match_mode: str = "any",
) -> list[dict[str, Any]]:
    """Keyword-scored search when ``keywords`` is given, else substring match on ``query``."""
    keyword_list = list(keywords or [])
    if keyword_list:
        return search_events_by_keywords(
            store, keyword_list, event_type, time_range, limit, match_mode
        )

    limit = validate_limit(limit)
    where, params = _filter_clauses(store, event_type, time_range)
    if query:
        where.append("description LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(query))
    rows = store.read(
        f"""
        SELECT {EVENT_COLUMNS}
        FROM events
        WHERE {" AND ".join(where)}
        ORDER BY timestamp DESC, id DESC
        LIMIT ?
        """,
        (*params, limit),
    )
    return [dict(_decode_event(row)) for row in rows]


def search_events_by_keywords(
    store: MemoryStore,
    keywords: Iterable[str],
    event_type: str | None = None,
    time_range: str | None = None,
    limit: int = 20,
    match_mode: str = "any",
) -> list[dict[str, Any]]:
    match_mode = validate_match_mode(match_mode)
    limit = validate_limit(limit)
    where, params = _filter_clauses(store, event_type, time_range)
    cleaned = store_search.clean_keywords(keywords)
    if not cleaned:
        return []
    rows = store.read(
        f"""
        SELECT {EVENT_COLUMNS}
        FROM events
        WHERE {" AND ".join(where)}
        ORDER BY timestamp DESC, id DESC
        """,
        params,
    )
    weights = store_search.FIELD_WEIGHTS["event"]
    scored = []
    for row in rows:
        record = _decode_event(row)
        match = store_search.score_fields(
            cleaned,
            {
                "description": record["description"],
                "metadata": store_search.json_text(record["metadata"]),
            },
            weights,
        )
        if store_search.is_match(match, cleaned, match_mode):
            scored.append((dict(record), match))
    return store_search.rank(scored, limit)


def query_entity_timeline(
    store: MemoryStore, entity_id: int, limit: int = 10
) -> list[EventRecord]:
    """Events whose decoded ``related_entity_ids`` contain ``entity_id``, newest first."""
    if isinstance(entity_id, bool) or not isinstance(entity_id, int):
        raise InvalidArgumentError(f"Invalid entity id {entity_id!r}. Expected an integer")
    limit = validate_limit(limit)
    rows = store.read(
        f"""
        SELECT {EVENT_COLUMNS}
        FROM events
        WHERE user_id = ? AND deleted = 0 AND related_entity_ids IS NOT NULL
        ORDER BY timestamp DESC, id DESC
        """,
        (store.user_id,),
    )
    timeline: list[EventRecord] = []
    for row in rows:
        record = _decode_event(row)
        if not contains_entity_id(record["related_entity_ids"], entity_id):
            continue
        timeline.append(record)
        if len(timeline) >= limit:
            break
    return timeline


def delete_event(store: MemoryStore, event_id: int) -> ChangeResult:
    if isinstance(event_id, bool) or not isinstance(event_id, int):
        raise InvalidArgumentError(f"Invalid event id {event_id!r}. Expected an integer")
    with store.write() as conn:
        cur = conn.execute(
            "UPDATE events SET deleted = 1 WHERE user_id = ? AND id = ? AND deleted = 0",
            (store.user_id, event_id),
        )
    changes = max(cur.rowcount, 0)
    return {"deleted": changes > 0, "changes": changes}
