from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Literal

from .. import db
from .types import TagResult
from .utils import decode_tags, normalize_tags, now_iso

if TYPE_CHECKING:
    from ._store import MemoryStore

TagTarget = Literal["attribute", "entity", "event"]

# table, identity column, whether the table tracks updated_at
_TARGETS: dict[str, tuple[str, str, bool]] = {
    "attribute": ("user_profile", "key", True),
    "entity": ("entities", "id", True),
    "event": ("events", "id", False),
}


def _change_tags(
    store: MemoryStore,
    target: TagTarget,
    identity: str | int,
    tags: Iterable[str],
    *,
    remove: bool,
) -> TagResult:
    table, column, has_updated_at = _TARGETS[target]
    requested = normalize_tags(tags)
    with store.write() as conn:
        row = conn.execute(
            f"SELECT tags FROM {table} WHERE user_id = ? AND {column} = ? AND deleted = 0",
            (store.user_id, identity),
        ).fetchone()
        if row is None:
            return {"updated": False, "tags": []}
        current = decode_tags(row["tags"])
        if remove:
            dropped = set(requested)
            updated = [tag for tag in current if tag not in dropped]
        else:
            updated = normalize_tags([*current, *requested])
        assignments = "tags = ?, updated_at = ?" if has_updated_at else "tags = ?"
        params: list[object] = [db.to_json(updated)]
        if has_updated_at:
            params.append(now_iso())
        conn.execute(
            f"UPDATE {table} SET {assignments} WHERE user_id = ? AND {column} = ?",
            (*params, store.user_id, identity),
        )
    return {"updated": updated != current, "tags": updated}


def add_tags(
    store: MemoryStore, target: TagTarget, identity: str | int, tags: Iterable[str]
) -> TagResult:
    return _change_tags(store, target, identity, tags, remove=False)


def remove_tags(
    store: MemoryStore, target: TagTarget, identity: str | int, tags: Iterable[str]
) -> TagResult:
    return _change_tags(store, target, identity, tags, remove=True)
