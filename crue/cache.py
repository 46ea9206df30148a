"""Daily series cache: reuse computed history, always recompute recent days."""

from __future__ import annotations

import json
import logging
import os
import pathlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Protocol, Sequence

from crue.models import DailySalesPoint
from crue.utils.dates import today_in_tz

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
CACHE_TTL_SECONDS = int(os.environ.get("SERIES_CACHE_TTL_HOURS", 24)) * 60 * 60


@dataclass(slots=True, frozen=True)
class CachedSeries:
    data: list[DailySalesPoint]
    cached_up_to: date


class SeriesCache(Protocol):
    def get(self, prefs_key: str, entity_ids: Sequence[str]) -> CachedSeries | None:
        ...

    def put(self, prefs_key: str, entity_ids: Sequence[str], data: Sequence[DailySalesPoint]) -> None:
        ...


def cache_key(days: int, weight: str, group_by: str, *, scope: str = "", start: date | None = None) -> str:
    """Entries are only shared by requests for the same scope and window."""
    key = f"{days}d_{weight}_{group_by}"
    if scope:
        key += f"_{scope}"
    if start is not None:
        key += f"_{start.isoformat()}"
    return key


def point_to_dict(point: DailySalesPoint) -> dict[str, Any]:
    return {
        "date": point.date.isoformat(),
        "entity_id": point.entity_id,
        "tickets": point.tickets,
        "revenue": str(point.revenue),
        "is_estimated": point.is_estimated,
        "contributing_show_ids": list(point.contributing_show_ids),
        "estimated_tickets": point.estimated_tickets,
        "estimated_revenue": str(point.estimated_revenue),
    }


def point_from_dict(data: dict[str, Any]) -> DailySalesPoint:
    return DailySalesPoint(
        date=date.fromisoformat(data["date"]),
        entity_id=data["entity_id"],
        tickets=int(data["tickets"]),
        revenue=Decimal(data["revenue"]),
        is_estimated=bool(data["is_estimated"]),
        contributing_show_ids=tuple(data.get("contributing_show_ids", ())),
        estimated_tickets=int(data.get("estimated_tickets", 0)),
        estimated_revenue=Decimal(data.get("estimated_revenue", "0")),
    )


class JsonSeriesCache:
    """File-backed cache keyed by preferences and the entity ids they cover."""

    def __init__(
        self,
        path: pathlib.Path,
        *,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = today_in_tz,
    ) -> None:
        self.path = path
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._today = today

    def _load(self) -> dict[str, Any]:
        empty = {"version": CACHE_VERSION, "entries": {}}
        if not self.path.exists():
            return empty
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning("Invalid series cache at %s; resetting", self.path)
            return empty
        if data.get("version") != CACHE_VERSION:
            return empty
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data))

    def get(self, prefs_key: str, entity_ids: Sequence[str]) -> CachedSeries | None:
        entry = self._load()["entries"].get(prefs_key)
        if not entry:
            return None
        if self._clock() - entry["timestamp"] > self.ttl_seconds:
            return None
        if sorted(entry["entity_ids"]) != sorted(entity_ids):
            return None
        return CachedSeries(
            data=[point_from_dict(item) for item in entry["data"]],
            cached_up_to=date.fromisoformat(entry["cached_up_to"]),
        )

    def put(self, prefs_key: str, entity_ids: Sequence[str], data: Sequence[DailySalesPoint]) -> None:
        """Store only days before yesterday; late reports can still change them."""
        yesterday = self._today() - timedelta(days=1)
        historical = sorted((p for p in data if p.date < yesterday), key=lambda p: (p.date, p.entity_id))
        if not historical:
            return
        cache = self._load()
        cache["entries"][prefs_key] = {
            "data": [point_to_dict(point) for point in historical],
            "cached_up_to": historical[-1].date.isoformat(),
            "timestamp": self._clock(),
            "entity_ids": sorted(entity_ids),
        }
        self._save(cache)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def merge_cached_and_fresh(
    cached: Sequence[DailySalesPoint],
    fresh: Sequence[DailySalesPoint],
    cached_up_to: date,
) -> list[DailySalesPoint]:
    """Cached points strictly before ``cached_up_to`` plus every fresh point.

    The boundary day itself and any date the fresh run covers come from the
    fresh computation.
    """
    fresh_keys = {(point.date, point.entity_id) for point in fresh}
    merged = [
        point
        for point in cached
        if point.date < cached_up_to and (point.date, point.entity_id) not in fresh_keys
    ]
    merged.extend(fresh)
    merged.sort(key=lambda point: (point.date, point.entity_id))
    return merged
