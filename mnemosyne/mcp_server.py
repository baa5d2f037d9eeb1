from __future__ import annotations

import atexit
import json
import logging
import threading
import weakref
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .config import MnemosyneConfig, load_config
from .git_sync import GitAutoSync
from .store import MemoryStore
from .templates import get_event_templates

logger = logging.getLogger(__name__)


def build_store(
    config: MnemosyneConfig | None = None, *, check_same_thread: bool = True
) -> MemoryStore:
    cfg = config or load_config()
    hooks = []
    if cfg.auto_sync:
        hooks.append(
            GitAutoSync(
                remote=cfg.sync_remote,
                branch=cfg.sync_branch,
                push_timeout_s=cfg.sync_push_timeout_s,
            )
        )
    return MemoryStore(
        Path(cfg.db_path),
        cfg.user_id,
        hooks=hooks,
        check_same_thread=check_same_thread,
    )


def build_server(config: MnemosyneConfig | None = None) -> FastMCP:
    cfg = config or load_config()
    mcp = FastMCP("mnemosyne")
    thread_local = threading.local()
    store_lock = threading.Lock()
    store_pool: weakref.WeakSet[MemoryStore] = weakref.WeakSet()

    def get_store() -> MemoryStore:
        store = getattr(thread_local, "store", None)
        if store is None:
            store = build_store(cfg)
            thread_local.store = store
            with store_lock:
                store_pool.add(store)
        return store

    def close_all_stores() -> None:
        with store_lock:
            stores = list(store_pool)
        for store in stores:
            try:
                store.close()
            except Exception:
                continue

    atexit.register(close_all_stores)

    def with_store(handler: Callable[[MemoryStore], Dict[str, Any]]) -> Dict[str, Any]:
        try:
            return handler(get_store())
        except Exception as exc:
            logger.warning("tool call failed: %s", exc)
            return {"error": str(exc)}

    # Profile attributes

    @mcp.tool()
    def update_profile(
        key: str,
        value: str,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Add or update a user attribute such as workplace, hobby or habit."""
        return with_store(lambda store: dict(store.update_attribute(key, value, category, tags)))

    @mcp.tool()
    def query_profile(
        keys: Optional[List[str]] = None, category: Optional[str] = None
    ) -> Dict[str, Any]:
        """Read user attributes, optionally restricted to keys or a category."""
        return with_store(lambda store: {"items": store.query_attributes(keys, category)})

    @mcp.tool()
    def delete_profile(key: str) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.delete_attribute(key)))

    @mcp.tool()
    def search_profile_by_keywords(
        keywords: List[str],
        category: Optional[str] = None,
        match_mode: str = "any",
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Rank user attributes by keyword hits in key and value."""

        def handler(store: MemoryStore) -> Dict[str, Any]:
            items = store.search_attributes_by_keywords(keywords, category, match_mode, limit)
            return {"items": items}

        return with_store(handler)

    # Entities

    @mcp.tool()
    def create_entity(
        entity_type: str,
        name: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Record a long-lived thing: a pet, person, vehicle or property."""

        def handler(store: MemoryStore) -> Dict[str, Any]:
            entity_id = store.create_entity(entity_type, name, attributes, tags)
            return {"entity_id": entity_id}

        return with_store(handler)

    @mcp.tool()
    def update_entity(
        entity_id: int,
        name: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
        status: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        def handler(store: MemoryStore) -> Dict[str, Any]:
            return dict(store.update_entity(entity_id, name, attributes, status, tags))

        return with_store(handler)

    @mcp.tool()
    def list_entities(
        entity_type: Optional[str] = None, status: str = "active"
    ) -> Dict[str, Any]:
        """List entities; status is active, inactive or all."""
        return with_store(lambda store: {"items": store.list_entities(entity_type, status)})

    @mcp.tool()
    def delete_entity(entity_id: int) -> Dict[str, Any]:
        """Mark an entity inactive."""
        return with_store(lambda store: dict(store.delete_entity(entity_id)))

    @mcp.tool()
    def search_entities_by_keywords(
        keywords: List[str],
        entity_type: Optional[str] = None,
        search_fields: Optional[List[str]] = None,
        match_mode: str = "any",
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Rank active entities by keyword hits in name and attributes."""

        def handler(store: MemoryStore) -> Dict[str, Any]:
            items = store.search_entities_by_keywords(
                keywords, entity_type, search_fields or ["all"], match_mode, limit
            )
            return {"items": items}

        return with_store(handler)

    # Events

    @mcp.tool()
    def add_event(
        event_type: str,
        description: str,
        related_entity_ids: Optional[List[int]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
        importance: float = 0.5,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Record something that happened; timestamp defaults to now (ISO 8601)."""

        def handler(store: MemoryStore) -> Dict[str, Any]:
            event_id = store.add_event(
                event_type,
                description,
                related_entity_ids,
                metadata,
                timestamp,
                importance,
                tags,
            )
            return {"event_id": event_id}

        return with_store(handler)

    @mcp.tool()
    def search_events(
        keywords: Optional[List[str]] = None,
        query: Optional[str] = None,
        event_type: Optional[str] = None,
        time_range: Optional[str] = None,
        limit: int = 20,
        match_mode: str = "any",
    ) -> Dict[str, Any]:
        """Search events by keywords (ranked) or a description substring.

        time_range accepts last_week, last_month, last_year, YYYY-MM or YYYY.
        """

        def handler(store: MemoryStore) -> Dict[str, Any]:
            items = store.search_events(query, keywords, event_type, time_range, limit, match_mode)
            return {"items": items}

        return with_store(handler)

    @mcp.tool()
    def query_entity_timeline(entity_id: int, limit: int = 10) -> Dict[str, Any]:
        """Events that mention an entity, newest first."""
        return with_store(lambda store: {"items": store.query_entity_timeline(entity_id, limit)})

    @mcp.tool()
    def delete_event(event_id: int) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.delete_event(event_id)))

    # Tags

    @mcp.tool()
    def add_tags_to_profile(key: str, tags: List[str]) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.add_tags_to_attribute(key, tags)))

    @mcp.tool()
    def remove_tags_from_profile(key: str, tags: List[str]) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.remove_tags_from_attribute(key, tags)))

    @mcp.tool()
    def add_tags_to_entity(entity_id: int, tags: List[str]) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.add_tags_to_entity(entity_id, tags)))

    @mcp.tool()
    def remove_tags_from_entity(entity_id: int, tags: List[str]) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.remove_tags_from_entity(entity_id, tags)))

    @mcp.tool()
    def add_tags_to_event(event_id: int, tags: List[str]) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.add_tags_to_event(event_id, tags)))

    @mcp.tool()
    def remove_tags_from_event(event_id: int, tags: List[str]) -> Dict[str, Any]:
        return with_store(lambda store: dict(store.remove_tags_from_event(event_id, tags)))

    @mcp.resource("memory://event-templates", mime_type="application/json")
    def event_templates() -> str:
        """Predefined event types with typical entities and metadata fields."""
        return json.dumps(get_event_templates(), ensure_ascii=False, indent=2)

    return mcp


def run(config: MnemosyneConfig | None = None) -> None:
    server = build_server(config)
    server.run()


if __name__ == "__main__":
    run()
