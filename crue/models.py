"""Domain data models for ticket sales and ad spend analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class DistributionWeight(str, Enum):
    EVEN = "even"
    EARLY = "early"
    LATE = "late"


class ScopeLevel(str, Enum):
    ORGANIZATION = "organization"
    PROJECT = "project"
    STOP = "stop"
    SHOW = "show"


class ScopeError(ValueError):
    pass


@dataclass(slots=True, frozen=True)
class Scope:
    level: ScopeLevel
    organization_id: str | None = None
    project_id: str | None = None
    stop_id: str | None = None
    show_id: str | None = None

    def __post_init__(self) -> None:
        required = {
            ScopeLevel.ORGANIZATION: self.organization_id,
            ScopeLevel.PROJECT: self.project_id,
            ScopeLevel.STOP: self.stop_id,
            ScopeLevel.SHOW: self.show_id,
        }
        if not required[ScopeLevel(self.level)]:
            raise ScopeError(f"{ScopeLevel(self.level).value}_id required for {ScopeLevel(self.level).value} scope")

    @property
    def entity_id(self) -> str:
        return {
            ScopeLevel.ORGANIZATION: self.organization_id,
            ScopeLevel.PROJECT: self.project_id,
            ScopeLevel.STOP: self.stop_id,
            ScopeLevel.SHOW: self.show_id,
        }[ScopeLevel(self.level)] or ""


@dataclass(slots=True, frozen=True)
class Show:
    id: str
    stop_id: str
    project_id: str
    show_date: date | None = None
    capacity: int | None = None
    sales_start_date: date | None = None
    name: str | None = None


@dataclass(slots=True, frozen=True)
class TicketSnapshot:
    show_id: str
    quantity_sold: int
    revenue: Decimal
    reported_at: datetime | None
    sale_date: date | None = None


@dataclass(slots=True, frozen=True)
class Interval:
    start_date: date
    end_date: date
    tickets_delta: int
    revenue_delta: Decimal
    is_estimated: bool

    @property
    def days(self) -> int:
        return max(1, (self.end_date - self.start_date).days)


@dataclass(slots=True, frozen=True)
class DailySalesPoint:
    date: date
    entity_id: str
    tickets: int
    revenue: Decimal
    is_estimated: bool
    contributing_show_ids: tuple[str, ...] = ()
    estimated_tickets: int = 0
    estimated_revenue: Decimal = Decimal("0")


@dataclass(slots=True, frozen=True)
class AdSpendRecord:
    date: date
    amount: Decimal
    source: str = "facebook"
    is_manual: bool = False


@dataclass(slots=True, frozen=True)
class DailySpend:
    date: date
    amount: Decimal


@dataclass(slots=True, frozen=True)
class DailyBreakdownRow:
    date: date
    ad_spend: Decimal
    estimated_tickets: int
    estimated_revenue: Decimal
    daily_roas: float | None


@dataclass(slots=True, frozen=True)
class PeriodMetrics:
    ad_spend: Decimal
    revenue_delta: Decimal
    tickets_delta: int
    roas: float | None
    cpt: float | None
    mer: float | None
    daily_breakdown: list[DailyBreakdownRow] | None = None


@dataclass(slots=True, frozen=True)
class TimingRecord:
    show_id: str
    sale_date: date | None
    days_out: int | None
    day_of_week: int | None
    is_holiday: bool
    quantity: int
    revenue: Decimal
    holiday_name: str | None = None


@dataclass(slots=True)
class ScopeShows:
    """Shows resolved for a scope, with the rollup ids the scope exposes."""

    scope: Scope
    shows: list[Show] = field(default_factory=list)
    project_ids: list[str] = field(default_factory=list)
    stop_ids: list[str] = field(default_factory=list)

    @property
    def show_ids(self) -> list[str]:
        return [show.id for show in self.shows]
