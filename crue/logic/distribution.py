"""Spread integer deltas across days without losing units."""

from __future__ import annotations

from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal

from crue.models import DistributionWeight

MINOR_UNIT = Decimal("0.01")

Distributor = Callable[[int, int], list[int]]


def _even(delta: int, days: int) -> list[int]:
    per_day = delta // days
    remainder = delta - per_day * days
    # remainder goes to the last days of the interval
    return [per_day + (1 if i >= days - remainder else 0) for i in range(days)]


def _weighted(weights: list[int], delta: int) -> list[int]:
    total_weight = sum(weights)
    distributed = [delta * w // total_weight for w in weights]
    remainder = delta - sum(distributed)
    by_weight = sorted(range(len(weights)), key=lambda i: weights[i], reverse=True)
    for idx in by_weight:
        if remainder <= 0:
            break
        distributed[idx] += 1
        remainder -= 1
    return distributed


def _early(delta: int, days: int) -> list[int]:
    return _weighted([days - i for i in range(days)], delta)


def _late(delta: int, days: int) -> list[int]:
    return _weighted([i + 1 for i in range(days)], delta)


DISTRIBUTORS: dict[DistributionWeight, Distributor] = {
    DistributionWeight.EVEN: _even,
    DistributionWeight.EARLY: _early,
    DistributionWeight.LATE: _late,
}


def distributor_for(weight: DistributionWeight | str) -> Distributor:
    try:
        return DISTRIBUTORS[DistributionWeight(weight)]
    except ValueError as exc:
        raise ValueError(f"Unknown distribution weight: {weight!r}") from exc


def distribute(delta: int, days: int, weight: DistributionWeight | str = DistributionWeight.EVEN) -> list[int]:
    """Split ``delta`` over ``days`` so that the parts always sum to ``delta``.

    ``even`` gives every day the same share and hands the remainder to the
    last days. ``early`` and ``late`` use triangular weights (first or last day
    heaviest) and hand leftover units to the heaviest days first.
    Non-positive deltas are never spread: they yield zeros.
    """
    distributor = distributor_for(weight)
    if days <= 0:
        return []
    if days == 1:
        return [max(0, delta)]
    if delta <= 0:
        return [0] * days
    return distributor(delta, days)


def distribute_amount(
    amount: Decimal, days: int, weight: DistributionWeight | str = DistributionWeight.EVEN
) -> list[Decimal]:
    """Spread a currency amount in minor units (0.01) so the total is kept exactly."""
    minor_units = int((amount / MINOR_UNIT).to_integral_value(rounding=ROUND_HALF_UP))
    return [Decimal(part) * MINOR_UNIT for part in distribute(minor_units, days, weight)]
