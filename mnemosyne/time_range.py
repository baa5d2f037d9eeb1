from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass

from .errors import UnsupportedTimeRangeError

RELATIVE_RANGES: dict[str, dt.timedelta] = {
    "last_week": dt.timedelta(days=7),
    "last_month": dt.timedelta(days=30),
    "last_year": dt.timedelta(days=365),
}

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_YEAR_RE = re.compile(r"^(\d{4})$")


@dataclass(frozen=True)
class TimeRange:
    """Half-open interval: ``start <= t < end``."""

    start: dt.datetime
    end: dt.datetime


def parse_time_range(value: str, *, now: dt.datetime | None = None) -> TimeRange:
    """Resolve ``last_week``/``last_month``/``last_year``, ``YYYY-MM`` or ``YYYY`` (UTC).

    Relative ranges are fixed durations ending now, not calendar-aware.
    """
    text = (value or "").strip()
    current = now or dt.datetime.now(dt.UTC)
    if text in RELATIVE_RANGES:
        return TimeRange(start=current - RELATIVE_RANGES[text], end=current)

    month_match = _MONTH_RE.match(text)
    if month_match:
        year, month = int(month_match.group(1)), int(month_match.group(2))
        if not 1 <= month <= 12 or year < 1 or (year, month) >= (dt.MAXYEAR, 12):
            raise UnsupportedTimeRangeError(value)
        start = dt.datetime(year, month, 1, tzinfo=dt.UTC)
        if month == 12:
            end = dt.datetime(year + 1, 1, 1, tzinfo=dt.UTC)
        else:
            end = dt.datetime(year, month + 1, 1, tzinfo=dt.UTC)
        return TimeRange(start=start, end=end)

    year_match = _YEAR_RE.match(text)
    if year_match:
        year = int(year_match.group(1))
        if year < 1 or year >= dt.MAXYEAR:
            raise UnsupportedTimeRangeError(value)
        return TimeRange(
            start=dt.datetime(year, 1, 1, tzinfo=dt.UTC),
            end=dt.datetime(year + 1, 1, 1, tzinfo=dt.UTC),
        )

    raise UnsupportedTimeRangeError(value)
