from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from .errors import InvalidArgumentError

ENTITY_TYPES: Final[tuple[str, ...]] = ("pet", "property", "vehicle", "person")

EVENT_TYPES: Final[tuple[str, ...]] = (
    "purchase",
    "illness",
    "maintenance",
    "activity",
    "milestone",
    "other",
)

ATTRIBUTE_CATEGORIES: Final[tuple[str, ...]] = ("basic_info", "preferences", "habits")

ENTITY_STATUSES: Final[tuple[str, ...]] = ("active", "inactive")

STATUS_FILTERS: Final[tuple[str, ...]] = ("active", "inactive", "all")

MATCH_MODES: Final[tuple[str, ...]] = ("any", "all")

ENTITY_SEARCH_FIELDS: Final[tuple[str, ...]] = ("name", "attributes", "all")


def _validate(value: str, allowed: tuple[str, ...], label: str) -> str:
    normalized = (value or "").strip().lower()
    if normalized in allowed:
        return normalized
    raise InvalidArgumentError(f"Invalid {label} '{value}'. Allowed: {', '.join(allowed)}")


def validate_entity_type(value: str) -> str:
    return _validate(value, ENTITY_TYPES, "entity type")


def validate_event_type(value: str) -> str:
    return _validate(value, EVENT_TYPES, "event type")


def validate_category(value: str) -> str:
    return _validate(value, ATTRIBUTE_CATEGORIES, "category")


def validate_entity_status(value: str) -> str:
    return _validate(value, ENTITY_STATUSES, "status")


def validate_status_filter(value: str) -> str:
    return _validate(value, STATUS_FILTERS, "status filter")


def validate_match_mode(value: str) -> str:
    return _validate(value, MATCH_MODES, "match mode")


def validate_search_fields(values: Iterable[str] | None) -> set[str]:
    """Expand entity search fields; ``all`` (or nothing) selects every field."""
    fields = {_validate(v, ENTITY_SEARCH_FIELDS, "search field") for v in values or ()}
    if not fields or "all" in fields:
        return {"name", "attributes"}
    return fields


def validate_importance(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError(f"Invalid importance {value!r}. Expected a number in [0, 1]")
    if not 0.0 <= float(value) <= 1.0:
        raise InvalidArgumentError(f"Invalid importance {value}. Expected a number in [0, 1]")
    return float(value)


def validate_limit(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgumentError(f"Invalid limit {value!r}. Expected a positive integer")
    return value
