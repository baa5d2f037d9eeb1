from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .. import db
from ..errors import InvalidArgumentError
from ..kinds import validate_category, validate_limit, validate_match_mode
from . import search as store_search
from .types import AttributeRecord, ChangeResult, UpsertResult
from .utils import decode_tags, normalize_tags, now_iso

if TYPE_CHECKING:
    from ._store import MemoryStore


def _require_key(key: str) -> str:
    if not isinstance(key, str) or not key.strip():
        raise InvalidArgumentError("Attribute key must be a non-empty string")
    return key


def update_attribute(
    store: MemoryStore,
    key: str,
    value: str,
    category: str | None = None,
    *,
    tags: Iterable[str] | None = None,
) -> UpsertResult:
    """Insert or overwrite ``key``, reporting the live value it replaced.

    A ``None`` category or tag list keeps whatever is already stored.
    """
    _require_key(key)
    if value is None:
        raise InvalidArgumentError("Attribute value is required")
    if category is not None:
        category = validate_category(category)
    tags_json = db.to_json(normalize_tags(tags)) if tags is not None else None
    with store.write() as conn:
        previous = conn.execute(
            "SELECT value FROM user_profile WHERE user_id = ? AND key = ? AND deleted = 0",
            (store.user_id, key),
        ).fetchone()
        conn.execute(
            """
            INSERT INTO user_profile (user_id, key, value, category, updated_at, deleted, tags)
            VALUES (?, ?, ?, ?, ?, 0, ?)
            ON CONFLICT(user_id, key) DO UPDATE SET
                value = excluded.value,
                category = COALESCE(excluded.category, user_profile.category),
                updated_at = excluded.updated_at,
                deleted = 0,
                tags = COALESCE(excluded.tags, user_profile.tags)
            """,
            (store.user_id, key, str(value), category, now_iso(), tags_json),
        )
    return {
        "updated": True,
        "had_previous_value": previous is not None,
        "previous_value": previous["value"] if previous is not None else None,
    }


def query_attributes(
    store: MemoryStore,
    keys: Iterable[str] | None = None,
    category: str | None = None,
) -> list[AttributeRecord]:
    where = ["user_id = ?", "deleted = 0"]
    params: list[Any] = [store.user_id]
    key_list = list(keys or [])
    if key_list:
        placeholders = ",".join("?" for _ in key_list)
        where.append(f"key IN ({placeholders})")
        params.extend(key_list)
    if category:
        where.append("category = ?")
        params.append(validate_category(category))
    rows = store.read(
        f"""
        SELECT key, value, category, updated_at, confidence, tags
        FROM user_profile
        WHERE {" AND ".join(where)}
        ORDER BY rowid
        """,
        params,
    )
    results: list[AttributeRecord] = []
    for row in rows:
        results.append(
            {
                "key": row["key"],
                "value": row["value"],
                "category": row["category"],
                "updated_at": row["updated_at"],
                "confidence": row["confidence"],
                "tags": decode_tags(row["tags"]),
            }
        )
    return results


def delete_attribute(store: MemoryStore, key: str) -> ChangeResult:
    with store.write() as conn:
        cur = conn.execute(
            """
            UPDATE user_profile SET deleted = 1, updated_at = ?
            WHERE user_id = ? AND key = ? AND deleted = 0
            """,
            (now_iso(), store.user_id, key),
        )
    changes = max(cur.rowcount, 0)
    return {"deleted": changes > 0, "changes": changes}


def search_attributes_by_keywords(
    store: MemoryStore,
    keywords: Iterable[str],
    category: str | None = None,
    match_mode: str = "any",
    limit: int = 20,
) -> list[dict[str, Any]]:
    match_mode = validate_match_mode(match_mode)
    limit = validate_limit(limit)
    cleaned = store_search.clean_keywords(keywords)
    if not cleaned:
        return []
    weights = store_search.FIELD_WEIGHTS["attribute"]
    scored = []
    for record in query_attributes(store, None, category):
        match = store_search.score_fields(
            cleaned,
            {"key": record["key"], "value": record["value"]},
            weights,
        )
        if store_search.is_match(match, cleaned, match_mode):
            scored.append((dict(record), match))
    return store_search.rank(scored, limit)
