"""Ad spend alignment, MVA handling and manual cost expansion."""

from __future__ import annotations

import os
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from crue.models import AdSpendRecord, DailySpend
from crue.utils.dates import date_range

MVA_RATE = Decimal(os.environ.get("MVA_RATE", "0.25"))

ZERO = Decimal("0")

SOURCE_LABELS = {
    "facebook": "Facebook",
    "tiktok": "TikTok",
    "snapchat": "Snapchat",
}


@dataclass(slots=True, frozen=True)
class ChannelSpend:
    channel: str
    ad_spend: Decimal
    share_of_spend: float | None
    days_active: int


def source_label(source: str) -> str:
    label = SOURCE_LABELS.get(source.lower())
    if label:
        return label
    return source[:1].upper() + source[1:].lower()


def apply_mva(amount: Decimal, include_mva: bool, rate: Decimal = MVA_RATE) -> Decimal:
    """Platforms report spend excluding MVA; add it back when asked to."""
    return amount * (1 + rate) if include_mva else amount


def _record_amount(record: AdSpendRecord, include_mva: bool, rate: Decimal) -> Decimal:
    if record.is_manual:
        return record.amount
    return apply_mva(record.amount, include_mva, rate)


def join_spend(
    records: Iterable[AdSpendRecord],
    start: date,
    end: date,
    *,
    include_mva: bool = False,
    rate: Decimal = MVA_RATE,
) -> list[DailySpend]:
    """Put spend on the same date axis as a daily series; missing days are zero."""
    by_date: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        if start <= record.date <= end:
            by_date[record.date] += _record_amount(record, include_mva, rate)
    return [DailySpend(date=day, amount=by_date.get(day, ZERO)) for day in date_range(start, end)]


def channel_breakdown(
    records: Iterable[AdSpendRecord],
    *,
    include_mva: bool = False,
    rate: Decimal = MVA_RATE,
) -> list[ChannelSpend]:
    spend: dict[str, Decimal] = defaultdict(lambda: ZERO)
    active: dict[str, set[date]] = defaultdict(set)
    for record in records:
        channel = record.source if record.is_manual else source_label(record.source)
        amount = _record_amount(record, include_mva, rate)
        spend[channel] += amount
        if amount > 0:
            active[channel].add(record.date)
    total = sum(spend.values(), ZERO)
    rows = [
        ChannelSpend(
            channel=channel,
            ad_spend=amount,
            share_of_spend=float(amount / total) if total > 0 else None,
            days_active=len(active[channel]),
        )
        for channel, amount in spend.items()
    ]
    rows.sort(key=lambda row: row.ad_spend, reverse=True)
    return rows


def expand_manual_cost(
    cost_start: date,
    cost_end: date,
    total: Decimal,
    query_start: date,
    query_end: date,
    *,
    category: str | None = None,
) -> list[AdSpendRecord]:
    """Spread a manual cost evenly over its own range, keeping days inside the query."""
    if cost_end < cost_start:
        return []
    total_days = (cost_end - cost_start).days + 1
    daily = total / total_days
    return [
        AdSpendRecord(date=day, amount=daily, source=category or "Annet", is_manual=True)
        for day in date_range(max(cost_start, query_start), min(cost_end, query_end))
    ]


def total_spend(days: Sequence[DailySpend]) -> Decimal:
    return sum((day.amount for day in days), ZERO)
