from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from typing import Any

from .. import db
from ..errors import InvalidArgumentError


def now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def format_timestamp(value: dt.datetime) -> str:
    """Canonical storage form: UTC, microsecond precision, so text order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC).isoformat(timespec="microseconds")


def now_iso() -> str:
    return format_timestamp(now())


def parse_iso8601(value: str) -> dt.datetime | None:
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def normalize_timestamp(value: str | dt.datetime | None) -> str:
    if value is None:
        return now_iso()
    if isinstance(value, dt.datetime):
        return format_timestamp(value)
    if isinstance(value, dt.date):
        return format_timestamp(dt.datetime(value.year, value.month, value.day, tzinfo=dt.UTC))
    parsed = parse_iso8601(str(value))
    if parsed is None:
        raise InvalidArgumentError(f"Invalid timestamp {value!r}. Expected ISO 8601")
    return format_timestamp(parsed)


def normalize_tags(tags: Iterable[Any] | None) -> list[str]:
    deduped: list[str] = []
    seen: set[str] = set()
    for tag in tags or ():
        text = str(tag).strip() if tag is not None else ""
        if not text or text in seen:
            continue
        seen.add(text)
        deduped.append(text)
    return deduped


def decode_tags(text: str | None) -> list[str]:
    parsed = db.from_json(text)
    if not isinstance(parsed, list):
        return []
    return normalize_tags(parsed)


def decode_entity_ids(text: str | None) -> list[Any] | None:
    parsed = db.from_json(text)
    if not isinstance(parsed, list):
        return None
    return parsed


def contains_entity_id(entity_ids: list[Any] | None, entity_id: int) -> bool:
    for item in entity_ids or ():
        if isinstance(item, bool):
            continue
        if isinstance(item, (int, float)) and item == entity_id:
            return True
        if isinstance(item, str) and item.strip().isdigit() and int(item) == entity_id:
            return True
    return False
