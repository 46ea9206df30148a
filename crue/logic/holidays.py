"""Norwegian public holiday calendar."""

from __future__ import annotations

import functools
from datetime import date, timedelta

EASTER_OFFSETS = {
    -7: "Palmesøndag",
    -3: "Skjærtorsdag",
    -2: "Langfredag",
    0: "Første påskedag",
    1: "Andre påskedag",
    39: "Kristi himmelfartsdag",
    49: "Første pinsedag",
    50: "Andre pinsedag",
}

FIXED_HOLIDAYS = {
    (1, 1): "Nyttårsdag",
    (5, 1): "Arbeidernes dag",
    (5, 17): "Grunnlovsdag",
    (12, 25): "Første juledag",
    (12, 26): "Andre juledag",
}


def easter_sunday(year: int) -> date:
    """Gregorian Easter Sunday (anonymous / Meeus-Jones-Butcher algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@functools.lru_cache(maxsize=64)
def holidays_for_year(year: int) -> dict[date, str]:
    easter = easter_sunday(year)
    table = {easter + timedelta(days=offset): name for offset, name in EASTER_OFFSETS.items()}
    for (month, day), name in FIXED_HOLIDAYS.items():
        table[date(year, month, day)] = name
    return dict(sorted(table.items()))


def holiday_name(value: date) -> str | None:
    return holidays_for_year(value.year).get(value)


def is_holiday(value: date) -> bool:
    return holiday_name(value) is not None


def holidays_between(start: date, end: date) -> dict[date, str]:
    found: dict[date, str] = {}
    for year in range(start.year, end.year + 1):
        for day, name in holidays_for_year(year).items():
            if start <= day <= end:
                found[day] = name
    return found
