from datetime import date, timedelta
from decimal import Decimal

import pytest

from crue.logic import efficiency
from crue.logic.spend import ChannelSpend
from crue.models import DailySpend

START = date(2024, 3, 1)


def _days(n):
    return [START + timedelta(days=i) for i in range(n)]


def test_ratios_are_null_safe():
    assert efficiency.roas(Decimal("500"), Decimal("0")) is None
    assert efficiency.cpt(Decimal("100"), 0) is None
    assert efficiency.mer(Decimal("100"), Decimal("0")) is None
    assert efficiency.roas(Decimal("500"), Decimal("100")) == 5.0
    assert efficiency.cpt(Decimal("100"), 4) == 25.0
    assert efficiency.mer(Decimal("100"), Decimal("400")) == 25.0


def test_period_metrics_without_spend():
    metrics = efficiency.period_metrics(Decimal("0"), Decimal("1200"), 12)
    assert metrics.roas is None
    assert metrics.cpt == 0.0
    assert metrics.mer == 0.0
    assert metrics.daily_breakdown is None


def test_decline_detected_after_roas_drop():
    dates = _days(14)
    spend = [100.0] * 14
    revenue = [1000.0] * 7 + [200.0] * 7
    [point] = efficiency.detect_decline_points(dates, spend, revenue)
    assert point.date == dates[7]
    assert point.roas_before == pytest.approx(10.0)
    assert point.roas_after == pytest.approx(2.0)
    assert point.decline_percent == pytest.approx(80.0)


def test_no_decline_for_short_or_flat_series():
    assert efficiency.detect_decline_points(_days(10), [100.0] * 10, [500.0] * 10) == []
    assert efficiency.detect_decline_points(_days(20), [100.0] * 20, [500.0] * 20) == []


def test_no_decline_without_prior_spend():
    revenue = [0.0] * 7 + [100.0] * 7
    spend = [0.0] * 7 + [100.0] * 7
    assert efficiency.detect_decline_points(_days(14), spend, revenue) == []


def test_daily_efficiency_accumulates():
    sales = {START: (2, Decimal("200")), START + timedelta(days=1): (3, Decimal("300"))}
    spend = [DailySpend(date=day, amount=Decimal("50")) for day in _days(3)]
    rows = efficiency.daily_efficiency(sales, spend)
    assert [row.cumulative_tickets for row in rows] == [2, 5, 5]
    assert rows[-1].cumulative_spend == Decimal("150")
    assert rows[0].daily_roas == 4.0
    assert rows[2].daily_roas == 0.0
    assert rows[2].cumulative_roas == pytest.approx(500 / 150)


def test_daily_breakdown_rows():
    sales = {START: (4, Decimal("400"))}
    spend = [DailySpend(date=START, amount=Decimal("0")), DailySpend(date=START + timedelta(days=1), amount=Decimal("10"))]
    rows = efficiency.daily_breakdown(sales, spend)
    assert rows[0].daily_roas is None
    assert rows[0].estimated_tickets == 4
    assert rows[1].estimated_revenue == 0


@pytest.mark.parametrize(
    "average,expected",
    [(1.5, "reducing"), (6.0, "increasing"), (3.0, "maintain"), (None, "maintain")],
)
def test_recommendation(average, expected):
    assert expected in efficiency.recommendation(average)


def test_analyze_full_report():
    sales = {day: (10, Decimal("1000")) for day in _days(7)}
    sales.update({day: (2, Decimal("200")) for day in _days(14)[7:]})
    spend = [DailySpend(date=day, amount=Decimal("100")) for day in _days(14)]
    rows = efficiency.daily_efficiency(sales, spend)
    channels = [ChannelSpend(channel="Facebook", ad_spend=Decimal("1400"), share_of_spend=1.0, days_active=14)]

    report = efficiency.analyze(rows, analysis_type="full", channels=channels)
    assert len(report.decline_points) == 1
    assert report.summary.total_tickets == 84
    assert report.summary.period_days == 14
    assert report.summary.days_with_spend == 14
    assert report.summary.average_roas == pytest.approx(8400 / 1400)
    assert "increasing" in report.summary.recommendation
    assert report.channels == channels

    marginal_only = efficiency.analyze(rows, analysis_type="marginal_returns", channels=channels)
    assert marginal_only.decline_points == []
    assert marginal_only.channels == []


def test_analyze_unknown_type():
    with pytest.raises(ValueError):
        efficiency.analyze([], analysis_type="vibes")


def test_analyze_empty_rows():
    report = efficiency.analyze([])
    assert report.summary.total_spend == 0
    assert report.summary.average_roas is None
    assert report.daily_metrics == []
