"""Daily sales series reconstruction."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from crue.logic.distribution import distribute, distribute_amount
from crue.logic.intervals import build_intervals
from crue.models import DailySalesPoint, DistributionWeight, Interval, TicketSnapshot
from crue.utils.dates import date_range

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(slots=True)
class _DayAccumulator:
    tickets: int = 0
    revenue: Decimal = ZERO
    estimated_tickets: int = 0
    estimated_revenue: Decimal = ZERO
    is_estimated: bool = False
    show_ids: set[str] = field(default_factory=set)

    def add(self, show_id: str, tickets: int, revenue: Decimal, estimated: bool) -> None:
        self.tickets += tickets
        self.revenue += revenue
        if estimated:
            self.estimated_tickets += tickets
            self.estimated_revenue += revenue
            self.is_estimated = True
        self.show_ids.add(show_id)


@dataclass(slots=True, frozen=True)
class CumulativeBaseline:
    tickets: int = 0
    revenue: Decimal = ZERO
    estimated_tickets: int = 0
    estimated_revenue: Decimal = ZERO


def assemble_daily_series(
    snapshots_by_show: Mapping[str, Sequence[TicketSnapshot]],
    start: date,
    end: date,
    show_to_entity: Mapping[str, str],
    *,
    entity_ids: Sequence[str] | None = None,
    weight: DistributionWeight | str = DistributionWeight.EVEN,
) -> list[DailySalesPoint]:
    """Estimate daily tickets and revenue per rollup entity over ``[start, end]``.

    Every date of the window is present for every entity, zero-filled where
    nothing was sold or nothing could be estimated.
    """
    if start > end:
        raise ValueError(f"start {start} is after end {end}")
    if entity_ids is None:
        entity_ids = sorted(set(show_to_entity.values()))
    days = {day: {entity: _DayAccumulator() for entity in entity_ids} for day in date_range(start, end)}

    for show_id, snapshots in snapshots_by_show.items():
        entity = show_to_entity.get(show_id)
        if entity is None:
            logger.debug("Show %s is outside the rollup; skipping its snapshots", show_id)
            continue
        if not snapshots:
            continue
        for interval in build_intervals(snapshots, start, end):
            _apply_interval(days, entity, show_id, interval, end, weight)

    return [
        DailySalesPoint(
            date=day,
            entity_id=entity,
            tickets=acc.tickets,
            revenue=acc.revenue,
            is_estimated=acc.is_estimated,
            contributing_show_ids=tuple(sorted(acc.show_ids)),
            estimated_tickets=acc.estimated_tickets,
            estimated_revenue=acc.estimated_revenue,
        )
        for day, per_entity in days.items()
        for entity, acc in per_entity.items()
    ]


def _apply_interval(
    days: dict[date, dict[str, _DayAccumulator]],
    entity: str,
    show_id: str,
    interval: Interval,
    window_end: date,
    weight: DistributionWeight | str,
) -> None:
    span = interval.days
    if span == 1 or not interval.is_estimated:
        target = min(interval.end_date, window_end)
        if target in days and entity in days[target]:
            days[target][entity].add(show_id, interval.tickets_delta, interval.revenue_delta, interval.is_estimated)
        return

    tickets = distribute(interval.tickets_delta, span, weight)
    revenue = distribute_amount(interval.revenue_delta, span, weight)
    for offset in range(span):
        day = interval.start_date + timedelta(days=offset)
        if day in days and entity in days[day]:
            days[day][entity].add(show_id, tickets[offset], revenue[offset], True)


def totals_by_date(points: Iterable[DailySalesPoint]) -> dict[date, tuple[int, Decimal]]:
    """Sum tickets and revenue across entities for each date."""
    totals: dict[date, tuple[int, Decimal]] = {}
    for point in points:
        tickets, revenue = totals.get(point.date, (0, ZERO))
        totals[point.date] = (tickets + point.tickets, revenue + point.revenue)
    return dict(sorted(totals.items()))


def to_cumulative(
    points: Sequence[DailySalesPoint],
    baselines: Mapping[str, CumulativeBaseline] | None = None,
) -> list[DailySalesPoint]:
    """Running totals per entity, starting from totals reported before the window."""
    baselines = baselines or {}
    running: dict[str, CumulativeBaseline] = defaultdict(CumulativeBaseline)
    running.update(baselines)
    cumulative: list[DailySalesPoint] = []
    for point in sorted(points, key=lambda p: (p.date, p.entity_id)):
        previous = running[point.entity_id]
        current = CumulativeBaseline(
            tickets=previous.tickets + point.tickets,
            revenue=previous.revenue + point.revenue,
            estimated_tickets=previous.estimated_tickets + point.estimated_tickets,
            estimated_revenue=previous.estimated_revenue + point.estimated_revenue,
        )
        running[point.entity_id] = current
        cumulative.append(
            replace(
                point,
                tickets=current.tickets,
                revenue=current.revenue,
                estimated_tickets=current.estimated_tickets,
                estimated_revenue=current.estimated_revenue,
            )
        )
    return cumulative


def remove_estimations(points: Sequence[DailySalesPoint]) -> list[DailySalesPoint]:
    """Keep only the reported part of each day."""
    return [
        replace(
            point,
            tickets=point.tickets - point.estimated_tickets,
            revenue=point.revenue - point.estimated_revenue,
            estimated_tickets=0,
            estimated_revenue=ZERO,
            is_estimated=False,
        )
        for point in points
    ]
