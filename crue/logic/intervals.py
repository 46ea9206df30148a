"""Turn cumulative ticket snapshots into sales intervals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from crue.models import Interval, TicketSnapshot
from crue.utils.dates import local_date

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DayTotal:
    """Last cumulative figures reported on a calendar day."""

    day: date
    quantity_sold: int
    revenue: Decimal


def daily_totals(snapshots: Iterable[TicketSnapshot]) -> list[DayTotal]:
    """Collapse snapshots ordered by ``reported_at`` to one total per report day.

    Snapshots without a timestamp cannot be placed and are skipped.
    """
    by_day: dict[date, DayTotal] = {}
    for snapshot in snapshots:
        if snapshot.reported_at is None:
            logger.debug("Skipping snapshot without reported_at for show %s", snapshot.show_id)
            continue
        day = local_date(snapshot.reported_at)
        by_day[day] = DayTotal(day=day, quantity_sold=snapshot.quantity_sold, revenue=Decimal(snapshot.revenue))
    return [by_day[day] for day in sorted(by_day)]


def clamped_delta(previous: DayTotal, current: DayTotal) -> tuple[int, Decimal]:
    tickets = current.quantity_sold - previous.quantity_sold
    revenue = current.revenue - previous.revenue
    if tickets < 0 or revenue < 0:
        logger.info(
            "Cumulative total decreased between %s and %s (tickets %+d, revenue %s); clamping to zero",
            previous.day,
            current.day,
            tickets,
            revenue,
        )
    return max(0, tickets), max(Decimal("0"), revenue)


def build_intervals(snapshots: Sequence[TicketSnapshot], start: date, end: date) -> list[Interval]:
    """Build the sales intervals of one show inside ``[start, end]``.

    The baseline is the last report before ``start``. Without a baseline the
    first report inside the window only anchors later intervals: sales before
    the first observation cannot be estimated.
    """
    totals = daily_totals(snapshots)
    baseline: DayTotal | None = None
    inside: list[DayTotal] = []
    for total in totals:
        if total.day < start:
            baseline = total
        elif total.day <= end:
            inside.append(total)

    intervals: list[Interval] = []
    if not inside:
        return intervals

    if baseline is not None:
        first = inside[0]
        tickets, revenue = clamped_delta(baseline, first)
        intervals.append(
            Interval(
                start_date=start,
                end_date=first.day,
                tickets_delta=tickets,
                revenue_delta=revenue,
                is_estimated=first.day != start,
            )
        )

    for previous, current in zip(inside, inside[1:]):
        tickets, revenue = clamped_delta(previous, current)
        intervals.append(
            Interval(
                start_date=previous.day,
                end_date=current.day,
                tickets_delta=tickets,
                revenue_delta=revenue,
                is_estimated=(current.day - previous.day).days > 1,
            )
        )
    return intervals
