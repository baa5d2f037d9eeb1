from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .. import db
from ..errors import InvalidArgumentError
from ..kinds import (
    validate_entity_status,
    validate_entity_type,
    validate_limit,
    validate_match_mode,
    validate_search_fields,
    validate_status_filter,
)
from . import search as store_search
from .types import ChangeResult, EntityRecord
from .utils import decode_tags, normalize_tags, now_iso

if TYPE_CHECKING:
    from ._store import MemoryStore


def _require_id(value: int, label: str = "entity id") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"Invalid {label} {value!r}. Expected an integer")
    return value


def _decode_entity(row: sqlite3.Row) -> EntityRecord:
    return {
        "id": row["id"],
        "entity_type": row["entity_type"],
        "name": row["name"],
        "attributes": db.from_json(row["attributes"]),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "status": row["status"] or "active",
        "tags": decode_tags(row["tags"]),
    }


def create_entity(
    store: MemoryStore,
    entity_type: str,
    name: str | None = None,
    attributes: Any = None,
    *,
    tags: Iterable[str] | None = None,
) -> int:
    entity_type = validate_entity_type(entity_type)
    created_at = now_iso()
    with store.write() as conn:
        cur = conn.execute(
            """
            INSERT INTO entities (
                user_id, entity_type, name, attributes, created_at, updated_at,
                status, deleted, tags
            )
            VALUES (?, ?, ?, ?, ?, ?, 'active', 0, ?)
            """,
            (
                store.user_id,
                entity_type,
                name,
                db.to_json(attributes),
                created_at,
                created_at,
                db.to_json(normalize_tags(tags)) if tags is not None else None,
            ),
        )
    if cur.lastrowid is None:
        raise RuntimeError("Failed to create entity")
    return int(cur.lastrowid)


def update_entity(
    store: MemoryStore,
    entity_id: int,
    name: str | None = None,
    attributes: Any = None,
    status: str | None = None,
    *,
    tags: Iterable[str] | None = None,
) -> ChangeResult:
    """Patch only the supplied fields; ``updated_at`` moves on every real patch."""
    _require_id(entity_id)
    updates: list[str] = []
    params: list[Any] = []
    if name is not None:
        updates.append("name = ?")
        params.append(name)
    if attributes is not None:
        updates.append("attributes = ?")
        params.append(db.to_json(attributes))
    if status is not None:
        updates.append("status = ?")
        params.append(validate_entity_status(status))
    if tags is not None:
        updates.append("tags = ?")
        params.append(db.to_json(normalize_tags(tags)))
    if not updates:
        return {"updated": False, "changes": 0, "message": "No fields to update"}

    updates.append("updated_at = ?")
    params.append(now_iso())
    with store.write() as conn:
        cur = conn.execute(
            f"""
            UPDATE entities SET {", ".join(updates)}
            WHERE user_id = ? AND id = ? AND deleted = 0
            """,
            (*params, store.user_id, entity_id),
        )
    changes = max(cur.rowcount, 0)
    return {"updated": changes > 0, "changes": changes}


def list_entities(
    store: MemoryStore,
    entity_type: str | None = None,
    status: str | None = "active",
) -> list[EntityRecord]:
    """List entities; flag-deleted rows never appear, whatever the status filter."""
    where = ["user_id = ?", "deleted = 0"]
    params: list[Any] = [store.user_id]
    if entity_type:
        where.append("entity_type = ?")
        params.append(validate_entity_type(entity_type))
    status_filter = validate_status_filter(status) if status else "all"
    if status_filter != "all":
        where.append("COALESCE(status, 'active') = ?")
        params.append(status_filter)
    rows = store.read(
        f"""
        SELECT id, entity_type, name, attributes, created_at, updated_at, status, tags
        FROM entities
        WHERE {" AND ".join(where)}
        ORDER BY created_at DESC, id DESC
        """,
        params,
    )
    return [_decode_entity(row) for row in rows]


def delete_entity(store: MemoryStore, entity_id: int) -> ChangeResult:
    """Hide an entity by marking it inactive; the row itself is kept."""
    _require_id(entity_id)
    with store.write() as conn:
        cur = conn.execute(
            """
            UPDATE entities SET status = 'inactive', updated_at = ?
            WHERE user_id = ? AND id = ? AND deleted = 0
              AND COALESCE(status, 'active') != 'inactive'
            """,
            (now_iso(), store.user_id, entity_id),
        )
    changes = max(cur.rowcount, 0)
    return {"deleted": changes > 0, "changes": changes}


def search_entities_by_keywords(
    store: MemoryStore,
    keywords: Iterable[str],
    entity_type: str | None = None,
    search_fields: Iterable[str] | None = ("all",),
    match_mode: str = "any",
    limit: int = 20,
) -> list[dict[str, Any]]:
    fields = validate_search_fields(search_fields)
    match_mode = validate_match_mode(match_mode)
    limit = validate_limit(limit)
    cleaned = store_search.clean_keywords(keywords)
    if not cleaned:
        return []
    weights = store_search.FIELD_WEIGHTS["entity"]
    scored = []
    for record in list_entities(store, entity_type, "active"):
        texts: dict[str, str | None] = {}
        if "name" in fields:
            texts["name"] = record["name"]
        if "attributes" in fields:
            texts["attributes"] = store_search.json_text(record["attributes"])
        match = store_search.score_fields(cleaned, texts, weights)
        if not store_search.is_match(match, cleaned, match_mode):
            continue
        result: dict[str, Any] = dict(record)
        result["matched_fields"] = {
            name: match.matched_fields.get(name, False) for name in ("name", "attributes")
        }
        scored.append((result, match))
    return store_search.rank(scored, limit)
