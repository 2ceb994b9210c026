from datetime import date

import pytest

from tracker_analytics.errors import InvalidPeriod, InvalidRange, ValidationError
from tracker_analytics.periods import parse_date_range, resolve_period


def test_resolve_week_and_month() -> None:
    today = date(2025, 9, 10)

    week = resolve_period("week", today)
    month = resolve_period("month", today)

    assert (week.start_date, week.end_date) == (date(2025, 9, 4), date(2025, 9, 10))
    assert (month.start_date, month.end_date) == (date(2025, 8, 12), date(2025, 9, 10))
    assert week.days == 7
    assert month.days == 30


def test_resolve_year_spans_365_days() -> None:
    year = resolve_period("year", date(2025, 9, 10))

    assert year.start_date == date(2024, 9, 11)
    assert year.days == 365


def test_unknown_period_is_a_validation_error() -> None:
    with pytest.raises(ValidationError, match="week, month, year"):
        resolve_period("foo", date(2025, 9, 10))

    with pytest.raises(InvalidPeriod):
        resolve_period("WEEK", date(2025, 9, 10))


def test_parse_date_range() -> None:
    date_range = parse_date_range("2025-09-04", "2025-09-06")

    assert list(date_range.dates()) == [date(2025, 9, 4), date(2025, 9, 5), date(2025, 9, 6)]
    assert parse_date_range("2025-09-04", "2025-09-04").days == 1


@pytest.mark.parametrize(
    ("start", "end", "message"),
    [
        (None, "2025-09-06", "required"),
        ("2025-09-04", "", "required"),
        ("2025-13-01", "2025-09-06", "YYYY-MM-DD"),
        ("20250904", "2025-09-06", "YYYY-MM-DD"),
        ("yesterday", "2025-09-06", "YYYY-MM-DD"),
    ],
)
def test_parse_date_range_rejects_bad_input(start, end, message) -> None:
    with pytest.raises(ValidationError, match=message):
        parse_date_range(start, end)


def test_start_after_end_is_invalid_range() -> None:
    with pytest.raises(InvalidRange):
        parse_date_range("2025-09-06", "2025-09-04")
