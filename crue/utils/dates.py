"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, timedelta
from typing import Iterator

import pendulum

DEFAULT_TZ = "Europe/Oslo"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz() -> date:
    return now_in_tz().date()


def parse_iso_date(value: str) -> date:
    return pendulum.parse(value).date()


def as_date(value: date | datetime | str | None) -> date | None:
    """Coerce a stored value into a calendar date, ``None`` if unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return local_date(value)
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        return None


def local_date(value: datetime) -> date:
    """Calendar date of a timestamp in the configured timezone.

    Naive timestamps are taken to be local already.
    """
    if value.tzinfo is None:
        return value.date()
    tz = pendulum.timezone(timezone_name())
    return pendulum.instance(value).in_timezone(tz).date()


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
