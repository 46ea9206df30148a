"""Analytics entry points: daily series, period metrics, efficiency and timing."""

from __future__ import annotations

import asyncio
import logging
import os
import pathlib
from datetime import date
from decimal import Decimal
from typing import Sequence

from sqlalchemy.engine import Engine

from crue.cache import JsonSeriesCache, SeriesCache, cache_key, merge_cached_and_fresh
from crue.logic import efficiency, timing
from crue.logic.daily import assemble_daily_series, totals_by_date
from crue.logic.spend import MVA_RATE, channel_breakdown, join_spend, total_spend
from crue.models import (
    AdSpendRecord,
    DailySalesPoint,
    DistributionWeight,
    PeriodMetrics,
    Scope,
    ScopeLevel,
    ScopeShows,
    TicketSnapshot,
)
from crue.store import Stores, call_store, sql_stores

logger = logging.getLogger(__name__)

SNAPSHOT_PAGE_SIZE = int(os.environ.get("SNAPSHOT_PAGE_SIZE", 100))
GROUP_BY = ("scope", "project", "stop", "show")


def cache_from_env() -> SeriesCache | None:
    path = os.environ.get("SERIES_CACHE_PATH")
    if not path:
        return None
    return JsonSeriesCache(pathlib.Path(path))


def rollup(resolved: ScopeShows, group_by: str) -> tuple[dict[str, str], list[str]]:
    """Map each show to the entity it rolls up into, plus every entity id of the scope."""
    if group_by not in GROUP_BY:
        raise ValueError(f"Unknown group_by: {group_by!r}")
    if group_by == "scope":
        entity = resolved.scope.entity_id
        return {show.id: entity for show in resolved.shows}, [entity]
    if group_by == "project":
        return {show.id: show.project_id for show in resolved.shows}, list(resolved.project_ids)
    if group_by == "stop":
        return {show.id: show.stop_id for show in resolved.shows}, list(resolved.stop_ids)
    return {show.id: show.id for show in resolved.shows}, resolved.show_ids


def _check_window(start: date, end: date) -> None:
    if start > end:
        raise ValueError(f"start {start} is after end {end}")


class AnalyticsService:
    def __init__(
        self,
        stores: Stores,
        *,
        cache: SeriesCache | None = None,
        page_size: int = SNAPSHOT_PAGE_SIZE,
        mva_rate: Decimal = MVA_RATE,
    ) -> None:
        self.stores = stores
        self.cache = cache
        self.page_size = max(1, page_size)
        self.mva_rate = mva_rate

    @classmethod
    def from_engine(cls, engine: Engine, *, cache: SeriesCache | None = None) -> "AnalyticsService":
        return cls(sql_stores(engine), cache=cache)

    async def _resolve(self, scope: Scope) -> ScopeShows:
        return await call_store(self.stores.scopes.resolve, scope)

    async def _snapshots(
        self, show_ids: Sequence[str], *, reported_until: date | None = None
    ) -> dict[str, list[TicketSnapshot]]:
        pages = [show_ids[i : i + self.page_size] for i in range(0, len(show_ids), self.page_size)]
        results = await asyncio.gather(
            *(call_store(self.stores.snapshots.fetch, page, reported_until=reported_until) for page in pages)
        )
        snapshots: dict[str, list[TicketSnapshot]] = {}
        for result in results:
            snapshots.update(result)
        return snapshots

    async def _spend(self, resolved: ScopeShows, start: date, end: date) -> list[AdSpendRecord]:
        return await call_store(self.stores.spend.fetch, resolved, start, end)

    async def _series(
        self,
        resolved: ScopeShows,
        start: date,
        end: date,
        weight: DistributionWeight,
        group_by: str,
        *,
        use_cache: bool,
    ) -> list[DailySalesPoint]:
        show_to_entity, entity_ids = rollup(resolved, group_by)
        cache = self.cache if use_cache else None
        scope = resolved.scope
        key = cache_key(
            (end - start).days + 1,
            weight.value,
            group_by,
            scope=f"{ScopeLevel(scope.level).value}:{scope.entity_id}",
            start=start,
        )

        cached = cache.get(key, entity_ids) if cache is not None else None
        snapshots = await self._snapshots(resolved.show_ids, reported_until=end)
        fresh = assemble_daily_series(snapshots, start, end, show_to_entity, entity_ids=entity_ids, weight=weight)
        if cached is None:
            series = fresh
        else:
            logger.debug("Series cache hit for %s up to %s", key, cached.cached_up_to)
            # fresh points are computed over the whole window so intervals crossing
            # the boundary keep their span; days the cache already holds are not replaced
            held = {(point.date, point.entity_id) for point in cached.data if point.date < cached.cached_up_to}
            recent = [
                point
                for point in fresh
                if point.date >= cached.cached_up_to or (point.date, point.entity_id) not in held
            ]
            merged = merge_cached_and_fresh(cached.data, recent, cached.cached_up_to)
            series = [point for point in merged if start <= point.date <= end]

        if cache is not None:
            cache.put(key, entity_ids, series)
        return series

    async def get_daily_series(
        self,
        scope: Scope,
        start: date,
        end: date,
        weight: DistributionWeight | str = DistributionWeight.EVEN,
        group_by: str = "scope",
        *,
        use_cache: bool = True,
    ) -> list[DailySalesPoint]:
        """Estimated daily tickets and revenue per entity for every date in ``[start, end]``."""
        _check_window(start, end)
        weight = DistributionWeight(weight)
        if group_by not in GROUP_BY:
            raise ValueError(f"Unknown group_by: {group_by!r}")
        resolved = await self._resolve(scope)
        return await self._series(resolved, start, end, weight, group_by, use_cache=use_cache)

    async def get_period_metrics(
        self,
        scope: Scope,
        start: date,
        end: date,
        include_mva: bool = True,
        include_daily: bool = False,
    ) -> PeriodMetrics:
        _check_window(start, end)
        resolved = await self._resolve(scope)
        points, records = await asyncio.gather(
            self._series(resolved, start, end, DistributionWeight.EVEN, "scope", use_cache=False),
            self._spend(resolved, start, end),
        )
        sales = totals_by_date(points)
        spend = join_spend(records, start, end, include_mva=include_mva, rate=self.mva_rate)
        tickets = sum(day[0] for day in sales.values())
        revenue = sum((day[1] for day in sales.values()), efficiency.ZERO)
        breakdown = efficiency.daily_breakdown(sales, spend) if include_daily else None
        return efficiency.period_metrics(total_spend(spend), revenue, tickets, daily_breakdown=breakdown)

    async def analyze_efficiency(
        self,
        scope: Scope,
        start: date,
        end: date,
        analysis_type: str = "full",
        include_mva: bool = True,
    ) -> efficiency.EfficiencyReport:
        _check_window(start, end)
        if analysis_type not in efficiency.ANALYSIS_TYPES:
            raise ValueError(f"Unknown efficiency analysis type: {analysis_type!r}")
        resolved = await self._resolve(scope)
        points, records = await asyncio.gather(
            self._series(resolved, start, end, DistributionWeight.EVEN, "scope", use_cache=False),
            self._spend(resolved, start, end),
        )
        spend = join_spend(records, start, end, include_mva=include_mva, rate=self.mva_rate)
        rows = efficiency.daily_efficiency(totals_by_date(points), spend)
        channels = channel_breakdown(records, include_mva=include_mva, rate=self.mva_rate)
        return efficiency.analyze(rows, analysis_type=analysis_type, channels=channels)

    async def analyze_sales_timing(
        self,
        scope: Scope,
        analysis_type: str = "full",
        days_out_buckets: Sequence[int] | None = None,
        compare_shows: bool = False,
    ) -> timing.TimingReport:
        if analysis_type not in timing.ANALYSIS_TYPES:
            raise ValueError(f"Unknown timing analysis type: {analysis_type!r}")
        resolved = await self._resolve(scope)
        snapshots = await self._snapshots(resolved.show_ids)
        shows = {show.id: show for show in resolved.shows}
        records = timing.sale_events(snapshots, shows)
        show_rows = timing.compare_shows(records, snapshots, shows) if compare_shows else ()
        return timing.analyze(
            records,
            analysis_type=analysis_type,
            boundaries=days_out_buckets,
            show_rows=show_rows,
        )
