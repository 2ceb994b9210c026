from __future__ import annotations

import re
from datetime import date, timedelta

from .errors import InvalidPeriod, InvalidRange, ValidationError
from .models import DateRange

# Named periods are rolling windows that end on (and include) today.
PERIOD_DAYS = {
    "week": 7,
    "month": 30,
    "year": 365,
}

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def make_range(start_date: date, end_date: date) -> DateRange:
    if start_date > end_date:
        raise InvalidRange("startDate must be on or before endDate")
    return DateRange(start_date=start_date, end_date=end_date)


def resolve_period(period: str, today: date) -> DateRange:
    days = PERIOD_DAYS.get(period)
    if days is None:
        raise InvalidPeriod("Period must be one of: week, month, year")
    return make_range(today - timedelta(days=days - 1), today)


def parse_date(value: str) -> date:
    # date.fromisoformat accepts compact and week forms on newer Pythons; only YYYY-MM-DD is part of the API.
    if not _ISO_DATE.match(value):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD") from exc


def parse_date_range(start: str | None, end: str | None) -> DateRange:
    if not start or not end:
        raise ValidationError("startDate and endDate query parameters are required")
    return make_range(parse_date(start), parse_date(end))
