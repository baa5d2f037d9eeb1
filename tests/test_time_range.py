from __future__ import annotations

import datetime as dt

import pytest

from mnemosyne.errors import InvalidArgumentError, UnsupportedTimeRangeError
from mnemosyne.time_range import parse_time_range

UTC = dt.UTC


def test_month_range_is_half_open_in_utc() -> None:
    window = parse_time_range("2024-02")

    assert window.start == dt.datetime(2024, 2, 1, tzinfo=UTC)
    assert window.end == dt.datetime(2024, 3, 1, tzinfo=UTC)


def test_december_rolls_into_next_year() -> None:
    window = parse_time_range("2023-12")

    assert window.end == dt.datetime(2024, 1, 1, tzinfo=UTC)


def test_year_range() -> None:
    window = parse_time_range("2021")

    assert window.start == dt.datetime(2021, 1, 1, tzinfo=UTC)
    assert window.end == dt.datetime(2022, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    ("name", "days"), [("last_week", 7), ("last_month", 30), ("last_year", 365)]
)
def test_relative_ranges_end_now(name: str, days: int) -> None:
    now = dt.datetime(2024, 6, 15, 12, 0, tzinfo=UTC)

    window = parse_time_range(name, now=now)

    assert window.end == now
    assert window.start == now - dt.timedelta(days=days)


@pytest.mark.parametrize("value", ["yesterday", "2024-13", "2024-1", "24", "", "0000"])
def test_unsupported_formats_raise(value: str) -> None:
    with pytest.raises(UnsupportedTimeRangeError) as excinfo:
        parse_time_range(value)

    assert isinstance(excinfo.value, InvalidArgumentError)
    assert excinfo.value.value == value
