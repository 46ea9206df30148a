"""Sales timing analysis: days out, weekdays, velocity and holidays."""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

import pandas as pd

from crue.logic.holidays import holiday_name, holidays_between
from crue.models import Show, TicketSnapshot, TimingRecord
from crue.utils.dates import local_date

logger = logging.getLogger(__name__)

DEFAULT_BUCKETS = (0, 7, 14, 30, 60, 90)
ANALYSIS_TYPES = {"days_out", "weekday", "velocity_curve", "holiday_impact", "full"}
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
FRAME_COLUMNS = ["show_id", "sale_date", "weekday", "days_out", "is_holiday", "tickets", "revenue"]

ZERO = Decimal("0")


@dataclass(slots=True, frozen=True)
class DaysOutBucket:
    label: str
    min_days: int | None
    max_days: int | None
    tickets: int
    revenue: float
    percent_of_total: float | None


@dataclass(slots=True, frozen=True)
class WeekdayRow:
    weekday: int
    name: str
    tickets: int
    revenue: float
    occurrences: int
    avg_tickets: float | None
    avg_revenue: float | None


@dataclass(slots=True, frozen=True)
class WeekdayReport:
    rows: list[WeekdayRow]
    best_day: str | None
    worst_day: str | None


@dataclass(slots=True, frozen=True)
class VelocityPoint:
    days_out: int
    tickets: int
    unique_days: int
    avg_velocity: float | None


@dataclass(slots=True, frozen=True)
class HolidayBucket:
    tickets: int
    revenue: float
    active_days: int
    avg_tickets_per_day: float | None
    avg_revenue_per_day: float | None


@dataclass(slots=True, frozen=True)
class HolidaySales:
    date: date
    name: str
    tickets: int
    revenue: float


@dataclass(slots=True, frozen=True)
class HolidayReport:
    holiday: HolidayBucket
    non_holiday: HolidayBucket
    impact_percent: float | None
    holidays: list[HolidaySales]


@dataclass(slots=True, frozen=True)
class ShowTiming:
    show_id: str
    show_date: date | None
    tickets: int
    revenue: float
    average_days_out: float | None
    first_sale_date: date | None
    last_sale_date: date | None
    capacity: int | None
    fill_rate: float | None


@dataclass(slots=True, frozen=True)
class TimingSummary:
    total_tickets: int
    total_revenue: float
    undated_tickets: int
    sale_events: int
    average_days_out: float | None


@dataclass(slots=True, frozen=True)
class TimingReport:
    analysis_type: str
    summary: TimingSummary
    days_out: list[DaysOutBucket] | None = None
    weekday: WeekdayReport | None = None
    velocity_curve: list[VelocityPoint] | None = None
    holiday_impact: HolidayReport | None = None
    show_comparison: list[ShowTiming] = field(default_factory=list)


def _ratio(numerator: float, denominator: float) -> float | None:
    if not denominator:
        return None
    return numerator / denominator


def _event_date(snapshot: TicketSnapshot) -> date | None:
    if snapshot.sale_date is not None:
        return snapshot.sale_date
    if snapshot.reported_at is None:
        return None
    return local_date(snapshot.reported_at) - timedelta(days=1)


def sale_events(
    snapshots_by_show: Mapping[str, Sequence[TicketSnapshot]],
    shows: Mapping[str, Show],
) -> list[TimingRecord]:
    """Turn cumulative snapshots into individual sale events.

    The first report of a show only sets the baseline unless the show has a
    sales start date, in which case sales count from zero.
    """
    records: list[TimingRecord] = []
    for show_id, snapshots in snapshots_by_show.items():
        show = shows.get(show_id)
        has_start = show is not None and show.sales_start_date is not None
        previous: tuple[int, Decimal] | None = (0, ZERO) if has_start else None
        for snapshot in snapshots:
            current = (snapshot.quantity_sold, Decimal(snapshot.revenue))
            if previous is None:
                previous = current
                continue
            tickets = max(0, current[0] - previous[0])
            revenue = max(ZERO, current[1] - previous[1])
            previous = current
            if tickets == 0 and revenue == 0:
                continue
            sale_day = _event_date(snapshot)
            show_date = show.show_date if show is not None else None
            name = holiday_name(sale_day) if sale_day is not None else None
            records.append(
                TimingRecord(
                    show_id=show_id,
                    sale_date=sale_day,
                    days_out=(show_date - sale_day).days if sale_day and show_date else None,
                    day_of_week=sale_day.weekday() if sale_day else None,
                    is_holiday=name is not None,
                    quantity=tickets,
                    revenue=revenue,
                    holiday_name=name,
                )
            )
    return records


def _frame(records: Iterable[TimingRecord]) -> pd.DataFrame:
    rows = [
        {
            "show_id": record.show_id,
            "sale_date": record.sale_date,
            "weekday": record.day_of_week,
            "days_out": record.days_out,
            "is_holiday": record.is_holiday,
            "tickets": record.quantity,
            "revenue": float(record.revenue),
        }
        for record in records
        if record.sale_date is not None
    ]
    return pd.DataFrame.from_records(rows, columns=FRAME_COLUMNS)


def _bucket_label(low: int | None, high: int | None) -> str:
    if low is None:
        return f"<{high + 1} days"
    if high is None:
        return f"{low}+ days"
    return f"{low}-{high} days"


def average_days_out(records: Iterable[TimingRecord]) -> float | None:
    weighted = 0
    tickets = 0
    for record in records:
        if record.days_out is None:
            continue
        weighted += record.days_out * record.quantity
        tickets += record.quantity
    return _ratio(weighted, tickets)


def days_out_buckets(
    records: Sequence[TimingRecord],
    boundaries: Sequence[int] = DEFAULT_BUCKETS,
) -> list[DaysOutBucket]:
    edges = sorted(set(int(b) for b in boundaries)) or list(DEFAULT_BUCKETS)
    tickets = [0] * (len(edges) + 1)
    revenue = [0.0] * (len(edges) + 1)
    for record in records:
        if record.days_out is None:
            continue
        # slot 0 holds sales before the first edge (after the show by default)
        slot = bisect.bisect_right(edges, record.days_out)
        tickets[slot] += record.quantity
        revenue[slot] += float(record.revenue)

    total = sum(tickets)
    rows: list[DaysOutBucket] = []
    for slot in range(len(edges) + 1):
        if slot == 0:
            if tickets[0] == 0 and revenue[0] == 0:
                continue
            low, high = None, edges[0] - 1
        else:
            low = edges[slot - 1]
            high = edges[slot] - 1 if slot < len(edges) else None
        pct = _ratio(tickets[slot] * 100, total)
        rows.append(
            DaysOutBucket(
                label=_bucket_label(low, high),
                min_days=low,
                max_days=high,
                tickets=tickets[slot],
                revenue=round(revenue[slot], 2),
                percent_of_total=round(pct, 2) if pct is not None else None,
            )
        )
    return rows


def weekday_analysis(records: Sequence[TimingRecord]) -> WeekdayReport:
    """Average sales per weekday occurrence that saw any sale."""
    frame = _frame(records)
    if frame.empty:
        grouped = pd.DataFrame(0, index=range(7), columns=["tickets", "revenue", "occurrences"])
    else:
        grouped = (
            frame.groupby("weekday")
            .agg(tickets=("tickets", "sum"), revenue=("revenue", "sum"), occurrences=("sale_date", "nunique"))
            .reindex(range(7), fill_value=0)
        )
    rows: list[WeekdayRow] = []
    for weekday, row in grouped.iterrows():
        occurrences = int(row["occurrences"])
        rows.append(
            WeekdayRow(
                weekday=int(weekday),
                name=WEEKDAY_NAMES[int(weekday)],
                tickets=int(row["tickets"]),
                revenue=round(float(row["revenue"]), 2),
                occurrences=occurrences,
                avg_tickets=_ratio(float(row["tickets"]), occurrences),
                avg_revenue=_ratio(float(row["revenue"]), occurrences),
            )
        )
    active = [row for row in rows if row.avg_tickets is not None]
    best = max(active, key=lambda row: row.avg_tickets, default=None)
    worst = min(active, key=lambda row: row.avg_tickets, default=None)
    return WeekdayReport(
        rows=rows,
        best_day=best.name if best else None,
        worst_day=worst.name if worst else None,
    )


def velocity_curve(records: Sequence[TimingRecord]) -> list[VelocityPoint]:
    frame = _frame(records)
    frame = frame[frame["days_out"].notna()]
    if frame.empty:
        return []
    frame = frame.assign(days_out=frame["days_out"].astype(int))
    grouped = (
        frame.groupby("days_out")
        .agg(tickets=("tickets", "sum"), unique_days=("sale_date", "nunique"))
        .sort_index(ascending=False)
    )
    return [
        VelocityPoint(
            days_out=int(days_out),
            tickets=int(row["tickets"]),
            unique_days=int(row["unique_days"]),
            avg_velocity=_ratio(float(row["tickets"]), int(row["unique_days"])),
        )
        for days_out, row in grouped.iterrows()
    ]


def _holiday_bucket(frame: pd.DataFrame) -> HolidayBucket:
    tickets = int(frame["tickets"].sum()) if not frame.empty else 0
    revenue = float(frame["revenue"].sum()) if not frame.empty else 0.0
    active_days = int(frame["sale_date"].nunique()) if not frame.empty else 0
    return HolidayBucket(
        tickets=tickets,
        revenue=round(revenue, 2),
        active_days=active_days,
        avg_tickets_per_day=_ratio(tickets, active_days),
        avg_revenue_per_day=_ratio(revenue, active_days),
    )


def holiday_impact(records: Sequence[TimingRecord]) -> HolidayReport:
    frame = _frame(records)
    mask = frame["is_holiday"].astype(bool)
    holiday = _holiday_bucket(frame[mask])
    regular = _holiday_bucket(frame[~mask])

    impact = None
    if holiday.avg_tickets_per_day is not None and regular.avg_tickets_per_day:
        impact = (holiday.avg_tickets_per_day - regular.avg_tickets_per_day) / regular.avg_tickets_per_day * 100

    # holidays inside the sales period are listed even without sales
    dated = [record.sale_date for record in records if record.sale_date is not None]
    per_day: dict[date, list] = {}
    if dated:
        for day, name in holidays_between(min(dated), max(dated)).items():
            per_day[day] = [name, 0, 0.0]
    for record in records:
        if record.sale_date is None or not record.is_holiday:
            continue
        entry = per_day.setdefault(record.sale_date, [record.holiday_name, 0, 0.0])
        entry[1] += record.quantity
        entry[2] += float(record.revenue)
    holidays = [
        HolidaySales(date=day, name=name, tickets=tickets, revenue=round(revenue, 2))
        for day, (name, tickets, revenue) in sorted(per_day.items())
    ]
    return HolidayReport(holiday=holiday, non_holiday=regular, impact_percent=impact, holidays=holidays)


def compare_shows(
    records: Sequence[TimingRecord],
    snapshots_by_show: Mapping[str, Sequence[TicketSnapshot]],
    shows: Mapping[str, Show],
) -> list[ShowTiming]:
    by_show: dict[str, list[TimingRecord]] = {}
    for record in records:
        by_show.setdefault(record.show_id, []).append(record)

    rows: list[ShowTiming] = []
    for show_id, show in shows.items():
        snapshots = snapshots_by_show.get(show_id) or []
        sold = snapshots[-1].quantity_sold if snapshots else 0
        revenue = float(snapshots[-1].revenue) if snapshots else 0.0
        events = by_show.get(show_id, [])
        dated = sorted(record.sale_date for record in events if record.sale_date is not None)
        rows.append(
            ShowTiming(
                show_id=show_id,
                show_date=show.show_date,
                tickets=sold,
                revenue=round(revenue, 2),
                average_days_out=average_days_out(events),
                first_sale_date=dated[0] if dated else None,
                last_sale_date=dated[-1] if dated else None,
                capacity=show.capacity,
                fill_rate=_ratio(sold, show.capacity or 0),
            )
        )
    rows.sort(key=lambda row: (row.show_date is None, row.show_date or date.min, row.show_id))
    return rows


def analyze(
    records: Sequence[TimingRecord],
    *,
    analysis_type: str = "full",
    boundaries: Sequence[int] | None = None,
    show_rows: Sequence[ShowTiming] = (),
) -> TimingReport:
    if analysis_type not in ANALYSIS_TYPES:
        raise ValueError(f"Unknown timing analysis type: {analysis_type!r}")
    undated = [record for record in records if record.sale_date is None]
    if undated:
        logger.info("%d sale events without a usable date left out of timing buckets", len(undated))

    def wants(kind: str) -> bool:
        return analysis_type in {kind, "full"}

    summary = TimingSummary(
        total_tickets=sum(record.quantity for record in records),
        total_revenue=round(float(sum((record.revenue for record in records), ZERO)), 2),
        undated_tickets=sum(record.quantity for record in undated),
        sale_events=len(records),
        average_days_out=average_days_out(records),
    )
    return TimingReport(
        analysis_type=analysis_type,
        summary=summary,
        days_out=days_out_buckets(records, boundaries or DEFAULT_BUCKETS) if wants("days_out") else None,
        weekday=weekday_analysis(records) if wants("weekday") else None,
        velocity_curve=velocity_curve(records) if wants("velocity_curve") else None,
        holiday_impact=holiday_impact(records) if wants("holiday_impact") else None,
        show_comparison=list(show_rows),
    )
