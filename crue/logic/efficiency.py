"""Marketing efficiency metrics: ROAS, CPT, MER and decline detection."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

import numpy as np

from crue.logic.spend import ChannelSpend
from crue.models import DailyBreakdownRow, DailySpend, PeriodMetrics

DECLINE_WINDOW_DAYS = int(os.environ.get("DECLINE_WINDOW_DAYS", 7))
DECLINE_THRESHOLD = float(os.environ.get("DECLINE_THRESHOLD", 0.7))
LOW_ROAS = 2.0
HIGH_ROAS = 5.0

ANALYSIS_TYPES = {"marginal_returns", "decline_points", "channel_comparison", "full"}

ZERO = Decimal("0")


@dataclass(slots=True, frozen=True)
class DailyEfficiency:
    date: date
    ad_spend: Decimal
    tickets: int
    revenue: Decimal
    cumulative_spend: Decimal
    cumulative_tickets: int
    cumulative_revenue: Decimal
    daily_roas: float | None
    cumulative_roas: float | None


@dataclass(slots=True, frozen=True)
class DeclinePoint:
    date: date
    roas_before: float
    roas_after: float
    decline_percent: float


@dataclass(slots=True, frozen=True)
class MarginalReturns:
    average_roas: float | None
    total_spend: Decimal
    total_revenue: Decimal
    total_tickets: int
    cpt: float | None
    mer: float | None


@dataclass(slots=True, frozen=True)
class EfficiencySummary:
    average_roas: float | None
    total_spend: Decimal
    total_revenue: Decimal
    total_tickets: int
    cpt: float | None
    mer: float | None
    period_days: int
    days_with_spend: int
    recommendation: str


@dataclass(slots=True, frozen=True)
class EfficiencyReport:
    analysis_type: str
    daily_metrics: list[DailyEfficiency]
    decline_points: list[DeclinePoint]
    marginal_returns: MarginalReturns
    summary: EfficiencySummary
    channels: list[ChannelSpend] = field(default_factory=list)


def roas(revenue: Decimal | float, ad_spend: Decimal | float) -> float | None:
    if ad_spend <= 0:
        return None
    return float(revenue) / float(ad_spend)


def cpt(ad_spend: Decimal | float, tickets: int) -> float | None:
    if tickets <= 0:
        return None
    return float(ad_spend) / tickets


def mer(ad_spend: Decimal | float, revenue: Decimal | float) -> float | None:
    if revenue <= 0:
        return None
    return float(ad_spend) / float(revenue) * 100


def period_metrics(
    ad_spend: Decimal,
    revenue: Decimal,
    tickets: int,
    *,
    daily_breakdown: list[DailyBreakdownRow] | None = None,
) -> PeriodMetrics:
    return PeriodMetrics(
        ad_spend=ad_spend,
        revenue_delta=revenue,
        tickets_delta=tickets,
        roas=roas(revenue, ad_spend),
        cpt=cpt(ad_spend, tickets),
        mer=mer(ad_spend, revenue),
        daily_breakdown=daily_breakdown,
    )


def daily_breakdown(
    sales: Mapping[date, tuple[int, Decimal]],
    spend: Sequence[DailySpend],
) -> list[DailyBreakdownRow]:
    rows = []
    for day in spend:
        tickets, revenue = sales.get(day.date, (0, ZERO))
        rows.append(
            DailyBreakdownRow(
                date=day.date,
                ad_spend=day.amount,
                estimated_tickets=tickets,
                estimated_revenue=revenue,
                daily_roas=roas(revenue, day.amount),
            )
        )
    return rows


def daily_efficiency(
    sales: Mapping[date, tuple[int, Decimal]],
    spend: Sequence[DailySpend],
) -> list[DailyEfficiency]:
    rows: list[DailyEfficiency] = []
    cumulative_spend = ZERO
    cumulative_tickets = 0
    cumulative_revenue = ZERO
    for day in spend:
        tickets, revenue = sales.get(day.date, (0, ZERO))
        cumulative_spend += day.amount
        cumulative_tickets += tickets
        cumulative_revenue += revenue
        rows.append(
            DailyEfficiency(
                date=day.date,
                ad_spend=day.amount,
                tickets=tickets,
                revenue=revenue,
                cumulative_spend=cumulative_spend,
                cumulative_tickets=cumulative_tickets,
                cumulative_revenue=cumulative_revenue,
                daily_roas=roas(revenue, day.amount),
                cumulative_roas=roas(cumulative_revenue, cumulative_spend),
            )
        )
    return rows


def detect_decline_points(
    dates: Sequence[date],
    spend: Sequence[float | Decimal],
    revenue: Sequence[float | Decimal],
    *,
    window: int = DECLINE_WINDOW_DAYS,
    threshold: float = DECLINE_THRESHOLD,
) -> list[DeclinePoint]:
    """Flag dates where ROAS of the next ``window`` days falls below
    ``threshold`` times the ROAS of the previous ``window`` days.
    """
    n = len(dates)
    if window <= 0 or n < 2 * window:
        return []
    spend_prefix = np.concatenate(([0.0], np.cumsum(np.asarray(spend, dtype=float))))
    revenue_prefix = np.concatenate(([0.0], np.cumsum(np.asarray(revenue, dtype=float))))

    points: list[DeclinePoint] = []
    for i in range(window, n - window + 1):
        before_spend = spend_prefix[i] - spend_prefix[i - window]
        before_revenue = revenue_prefix[i] - revenue_prefix[i - window]
        after_spend = spend_prefix[i + window] - spend_prefix[i]
        after_revenue = revenue_prefix[i + window] - revenue_prefix[i]

        roas_before = before_revenue / before_spend if before_spend > 0 else 0.0
        roas_after = after_revenue / after_spend if after_spend > 0 else 0.0
        if roas_before > 0 and roas_after < roas_before * threshold:
            points.append(
                DeclinePoint(
                    date=dates[i],
                    roas_before=float(roas_before),
                    roas_after=float(roas_after),
                    decline_percent=float((roas_before - roas_after) / roas_before * 100),
                )
            )
    return points


def marginal_returns(rows: Sequence[DailyEfficiency]) -> MarginalReturns:
    total_spend = rows[-1].cumulative_spend if rows else ZERO
    total_revenue = rows[-1].cumulative_revenue if rows else ZERO
    total_tickets = rows[-1].cumulative_tickets if rows else 0
    return MarginalReturns(
        average_roas=roas(total_revenue, total_spend),
        total_spend=total_spend,
        total_revenue=total_revenue,
        total_tickets=total_tickets,
        cpt=cpt(total_spend, total_tickets),
        mer=mer(total_spend, total_revenue),
    )


def recommendation(average_roas: float | None) -> str:
    if average_roas is not None and average_roas < LOW_ROAS:
        return f"Consider reducing ad spend - ROAS below {LOW_ROAS:g}x"
    if average_roas is not None and average_roas > HIGH_ROAS:
        return "Strong ROAS - consider increasing spend to scale"
    return "ROAS is healthy - maintain current spend levels"


def analyze(
    rows: Sequence[DailyEfficiency],
    *,
    analysis_type: str = "full",
    channels: Sequence[ChannelSpend] = (),
) -> EfficiencyReport:
    if analysis_type not in ANALYSIS_TYPES:
        raise ValueError(f"Unknown efficiency analysis type: {analysis_type!r}")
    declines: list[DeclinePoint] = []
    if analysis_type in {"decline_points", "full"}:
        declines = detect_decline_points(
            [row.date for row in rows],
            [row.ad_spend for row in rows],
            [row.revenue for row in rows],
        )
    marginal = marginal_returns(rows)
    summary = EfficiencySummary(
        average_roas=marginal.average_roas,
        total_spend=marginal.total_spend,
        total_revenue=marginal.total_revenue,
        total_tickets=marginal.total_tickets,
        cpt=marginal.cpt,
        mer=marginal.mer,
        period_days=len(rows),
        days_with_spend=sum(1 for row in rows if row.ad_spend > 0),
        recommendation=recommendation(marginal.average_roas),
    )
    return EfficiencyReport(
        analysis_type=analysis_type,
        daily_metrics=list(rows),
        decline_points=declines,
        marginal_returns=marginal,
        summary=summary,
        channels=list(channels) if analysis_type in {"channel_comparison", "full"} else [],
    )
