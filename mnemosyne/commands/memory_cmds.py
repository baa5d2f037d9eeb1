from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..errors import MnemosyneError
from ..store import MemoryStore
from .common import emit, fail, format_bytes, parse_json_option

StoreFactory = Callable[[str | None, str | None], MemoryStore]


def _run(
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    handler: Callable[[MemoryStore], Any],
) -> None:
    try:
        store = store_from_path(db_path, user_id)
    except MnemosyneError as exc:
        fail(str(exc))
    try:
        emit(handler(store))
    except MnemosyneError as exc:
        fail(str(exc))
    finally:
        store.close()


def init_db_cmd(*, store_from_path: StoreFactory, db_path: str | None) -> None:
    """Create the SQLite database (no-op if it already exists)."""

    _run(store_from_path, db_path, None, lambda store: {"path": str(store.db_path)})


def stats_cmd(*, store_from_path: StoreFactory, db_path: str | None, user_id: str | None) -> None:
    def handler(store: MemoryStore) -> dict[str, Any]:
        stats = store.stats()
        stats["size"] = format_bytes(stats["size_bytes"])
        return stats

    _run(store_from_path, db_path, user_id, handler)


# Profile attributes


def profile_set_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    key: str,
    value: str,
    category: str | None,
    tags: list[str] | None,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.update_attribute(key, value, category, tags or None),
    )


def profile_get_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    keys: list[str] | None,
    category: str | None,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.query_attributes(keys or None, category),
    )


def profile_delete_cmd(
    *, store_from_path: StoreFactory, db_path: str | None, user_id: str | None, key: str
) -> None:
    _run(store_from_path, db_path, user_id, lambda store: store.delete_attribute(key))


def profile_search_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    keywords: list[str],
    category: str | None,
    match_mode: str,
    limit: int,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.search_attributes_by_keywords(keywords, category, match_mode, limit),
    )


def profile_tag_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    key: str,
    tags: list[str],
    remove: bool = False,
) -> None:
    def handler(store: MemoryStore) -> Any:
        if remove:
            return store.remove_tags_from_attribute(key, tags)
        return store.add_tags_to_attribute(key, tags)

    _run(store_from_path, db_path, user_id, handler)


# Entities


def entity_create_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    entity_type: str,
    name: str | None,
    attributes: str | None,
    tags: list[str] | None,
) -> None:
    parsed = parse_json_option(attributes, "attributes")
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: {
            "entity_id": store.create_entity(entity_type, name, parsed, tags or None)
        },
    )


def entity_update_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    entity_id: int,
    name: str | None,
    attributes: str | None,
    status: str | None,
    tags: list[str] | None,
) -> None:
    parsed = parse_json_option(attributes, "attributes")
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.update_entity(entity_id, name, parsed, status, tags or None),
    )


def entity_list_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    entity_type: str | None,
    status: str,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.list_entities(entity_type, status),
    )


def entity_delete_cmd(
    *, store_from_path: StoreFactory, db_path: str | None, user_id: str | None, entity_id: int
) -> None:
    _run(store_from_path, db_path, user_id, lambda store: store.delete_entity(entity_id))


def entity_search_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    keywords: list[str],
    entity_type: str | None,
    fields: list[str] | None,
    match_mode: str,
    limit: int,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.search_entities_by_keywords(
            keywords, entity_type, fields or ["all"], match_mode, limit
        ),
    )


# Events


def event_add_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    event_type: str,
    description: str,
    entity_ids: list[int] | None,
    metadata: str | None,
    timestamp: str | None,
    importance: float,
    tags: list[str] | None,
) -> None:
    parsed = parse_json_option(metadata, "metadata")
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: {
            "event_id": store.add_event(
                event_type,
                description,
                entity_ids or None,
                parsed,
                timestamp,
                importance,
                tags or None,
            )
        },
    )


def event_search_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    keywords: list[str] | None,
    query: str | None,
    event_type: str | None,
    time_range: str | None,
    match_mode: str,
    limit: int,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.search_events(
            query, keywords or None, event_type, time_range, limit, match_mode
        ),
    )


def event_timeline_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    user_id: str | None,
    entity_id: int,
    limit: int,
) -> None:
    _run(
        store_from_path,
        db_path,
        user_id,
        lambda store: store.query_entity_timeline(entity_id, limit),
    )


def event_delete_cmd(
    *, store_from_path: StoreFactory, db_path: str | None, user_id: str | None, event_id: int
) -> None:
    _run(store_from_path, db_path, user_id, lambda store: store.delete_event(event_id))
