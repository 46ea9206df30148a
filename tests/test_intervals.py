from dataclasses import replace
from datetime import date
from decimal import Decimal

from conftest import report

from crue.logic.intervals import build_intervals, daily_totals


def test_gap_between_reports_is_estimated():
    snapshots = [report("a", date(2024, 3, 1), 100), report("a", date(2024, 3, 11), 300)]
    intervals = build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 11))
    assert len(intervals) == 1
    interval = intervals[0]
    assert interval.tickets_delta == 200
    assert interval.revenue_delta == Decimal("20000")
    assert interval.is_estimated
    assert interval.days == 10


def test_consecutive_days_are_exact():
    snapshots = [report("a", date(2024, 3, 1), 10), report("a", date(2024, 3, 2), 12)]
    [interval] = build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 5))
    assert not interval.is_estimated
    assert interval.end_date == date(2024, 3, 2)


def test_baseline_before_window_opens_first_interval():
    snapshots = [report("a", date(2024, 2, 20), 50), report("a", date(2024, 3, 4), 80)]
    [interval] = build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 10))
    assert interval.start_date == date(2024, 3, 1)
    assert interval.end_date == date(2024, 3, 4)
    assert interval.tickets_delta == 30
    assert interval.is_estimated


def test_decrease_is_clamped_to_zero():
    snapshots = [report("a", date(2024, 3, 1), 300), report("a", date(2024, 3, 2), 250)]
    [interval] = build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 2))
    assert interval.tickets_delta == 0
    assert interval.revenue_delta == 0


def test_same_day_reports_keep_the_last():
    snapshots = [
        report("a", date(2024, 3, 1), 10, hour=8),
        report("a", date(2024, 3, 1), 14, hour=20),
        report("a", date(2024, 3, 2), 20),
    ]
    totals = daily_totals(snapshots)
    assert [total.quantity_sold for total in totals] == [14, 20]
    [interval] = build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 2))
    assert interval.tickets_delta == 6


def test_reports_without_timestamp_are_skipped():
    undated = replace(report("a", date(2024, 3, 2), 99), reported_at=None)
    snapshots = [report("a", date(2024, 3, 1), 10), undated, report("a", date(2024, 3, 3), 20)]
    [interval] = build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 3))
    assert interval.tickets_delta == 10


def test_no_reports_inside_window():
    snapshots = [report("a", date(2024, 2, 1), 10)]
    assert build_intervals(snapshots, date(2024, 3, 1), date(2024, 3, 3)) == []
    assert build_intervals([], date(2024, 3, 1), date(2024, 3, 3)) == []
