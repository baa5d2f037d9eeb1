"""Keyword relevance scoring shared by attribute, entity and event search.

Scoring is a weighted count of case-insensitive, non-overlapping keyword
occurrences per field. It does not touch storage.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final, TypeVar

from .types import KeywordMatch

FIELD_WEIGHTS: Final[dict[str, dict[str, int]]] = {
    "attribute": {"key": 2, "value": 1},
    "entity": {"name": 3, "attributes": 1},
    "event": {"description": 2, "metadata": 1},
}

T = TypeVar("T", bound=dict)


def clean_keywords(keywords: Iterable[str] | None) -> list[tuple[str, str]]:
    """Return ``(original, lowered)`` pairs, dropping blanks and duplicates."""
    cleaned: list[tuple[str, str]] = []
    seen: set[str] = set()
    for keyword in keywords or ():
        if keyword is None:
            continue
        lowered = str(keyword).strip().lower()
        if not lowered or lowered in seen:
            continue
        seen.add(lowered)
        cleaned.append((str(keyword), lowered))
    return cleaned


def json_text(value: Any) -> str | None:
    """Compact JSON text that attribute and metadata keywords are matched against."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def count_occurrences(text: str | None, keyword: str) -> int:
    if not text or not keyword:
        return 0
    return text.lower().count(keyword)


def score_fields(
    keywords: Sequence[tuple[str, str]],
    fields: Mapping[str, str | None],
    weights: Mapping[str, int],
) -> KeywordMatch:
    match = KeywordMatch(matched_fields={name: False for name in fields})
    for original, lowered in keywords:
        keyword_score = 0
        for name, text in fields.items():
            hits = count_occurrences(text, lowered)
            if hits:
                keyword_score += hits * weights[name]
                match.matched_fields[name] = True
        if keyword_score:
            match.score += keyword_score
            match.matched_keywords.append(original)
    return match


def is_match(match: KeywordMatch, keywords: Sequence[tuple[str, str]], match_mode: str) -> bool:
    if not keywords:
        return False
    if match_mode == "all":
        return len(match.matched_keywords) == len(keywords)
    return bool(match.matched_keywords)


def rank(scored: Iterable[tuple[T, KeywordMatch]], limit: int) -> list[T]:
    """Attach scores and order by relevance; ``sorted`` keeps candidate order on ties."""
    results: list[Any] = []
    for record, match in scored:
        record["relevance_score"] = match.score
        record["matched_keywords"] = list(match.matched_keywords)
        results.append(record)
    results = sorted(results, key=lambda item: item["relevance_score"], reverse=True)
    return results[:limit]
