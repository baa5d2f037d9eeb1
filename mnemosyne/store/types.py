from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict


class AttributeRecord(TypedDict):
    key: str
    value: str
    category: str | None
    updated_at: str
    confidence: float
    tags: list[str]


class EntityRecord(TypedDict):
    id: int
    entity_type: str
    name: str | None
    attributes: Any
    created_at: str
    updated_at: str
    status: str
    tags: list[str]


class EventRecord(TypedDict):
    id: int
    event_type: str
    description: str
    related_entity_ids: list[Any] | None
    metadata: Any
    timestamp: str
    importance: float
    tags: list[str]


class UpsertResult(TypedDict):
    updated: bool
    had_previous_value: bool
    previous_value: str | None


class ChangeResult(TypedDict, total=False):
    updated: bool
    deleted: bool
    changes: int
    message: str


class TagResult(TypedDict):
    updated: bool
    tags: list[str]


@dataclass
class KeywordMatch:
    score: int = 0
    matched_keywords: list[str] = field(default_factory=list)
    matched_fields: dict[str, bool] = field(default_factory=dict)
