from __future__ import annotations

from ._store import MemoryStore, WriteHook
from .search import FIELD_WEIGHTS
from .types import (
    AttributeRecord,
    ChangeResult,
    EntityRecord,
    EventRecord,
    KeywordMatch,
    TagResult,
    UpsertResult,
)

__all__ = [
    "FIELD_WEIGHTS",
    "AttributeRecord",
    "ChangeResult",
    "EntityRecord",
    "EventRecord",
    "KeywordMatch",
    "MemoryStore",
    "TagResult",
    "UpsertResult",
    "WriteHook",
]
