"""SQLAlchemy-backed stores for shows, ticket snapshots and spend."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import or_, select
from sqlalchemy.engine import Engine

from crue.db import tables
from crue.logic.spend import expand_manual_cost
from crue.models import AdSpendRecord, Scope, ScopeLevel, ScopeShows, Show, TicketSnapshot
from crue.utils.dates import as_date

logger = logging.getLogger(__name__)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.debug("Unparseable reported_at %r", value)
        return None


class SqlScopeStore:
    """Walks organization → projects → stops → shows."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def resolve(self, scope: Scope) -> ScopeShows:
        level = ScopeLevel(scope.level)
        with self.engine.connect() as conn:
            if level is ScopeLevel.SHOW:
                stop_rows = conn.execute(
                    select(tables.stops.c.id, tables.stops.c.project_id)
                    .join(tables.shows, tables.shows.c.stop_id == tables.stops.c.id)
                    .where(tables.shows.c.id == scope.show_id)
                ).all()
            elif level is ScopeLevel.STOP:
                stop_rows = conn.execute(
                    select(tables.stops.c.id, tables.stops.c.project_id).where(tables.stops.c.id == scope.stop_id)
                ).all()
            elif level is ScopeLevel.PROJECT:
                stop_rows = conn.execute(
                    select(tables.stops.c.id, tables.stops.c.project_id).where(
                        tables.stops.c.project_id == scope.project_id
                    )
                ).all()
            else:
                stop_rows = conn.execute(
                    select(tables.stops.c.id, tables.stops.c.project_id)
                    .join(tables.projects, tables.projects.c.id == tables.stops.c.project_id)
                    .where(tables.projects.c.organization_id == scope.organization_id)
                ).all()

            project_ids = self._project_ids(conn, scope, stop_rows)
            stop_to_project = {row.id: row.project_id for row in stop_rows}
            show_query = select(tables.shows).where(tables.shows.c.stop_id.in_(list(stop_to_project)))
            if level is ScopeLevel.SHOW:
                show_query = show_query.where(tables.shows.c.id == scope.show_id)
            show_rows = conn.execute(show_query.order_by(tables.shows.c.date, tables.shows.c.id)).mappings().all()

        shows = [
            Show(
                id=row["id"],
                stop_id=row["stop_id"],
                project_id=stop_to_project[row["stop_id"]],
                show_date=as_date(row["date"]),
                capacity=row["capacity"],
                sales_start_date=as_date(row["sales_start_date"]),
                name=row["name"],
            )
            for row in show_rows
        ]
        return ScopeShows(scope=scope, shows=shows, project_ids=project_ids, stop_ids=sorted(stop_to_project))

    def _project_ids(self, conn, scope: Scope, stop_rows: Sequence[Any]) -> list[str]:
        if ScopeLevel(scope.level) is ScopeLevel.ORGANIZATION:
            rows = conn.execute(
                select(tables.projects.c.id).where(tables.projects.c.organization_id == scope.organization_id)
            ).scalars()
            return sorted(rows)
        if ScopeLevel(scope.level) is ScopeLevel.PROJECT:
            return [scope.project_id]
        return sorted({row.project_id for row in stop_rows})


class SqlSnapshotStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def fetch(self, show_ids: Sequence[str], *, reported_until: date | None = None) -> dict[str, list[TicketSnapshot]]:
        if not show_ids:
            return {}
        t = tables.tickets
        query = select(t.c.show_id, t.c.quantity_sold, t.c.revenue, t.c.reported_at, t.c.sale_date).where(
            t.c.show_id.in_(list(show_ids))
        )
        if reported_until is not None:
            query = query.where(t.c.reported_at < datetime.combine(reported_until + timedelta(days=1), time.min))
        query = query.order_by(t.c.show_id, t.c.reported_at.asc().nulls_last(), t.c.id)

        snapshots: dict[str, list[TicketSnapshot]] = defaultdict(list)
        with self.engine.connect() as conn:
            for row in conn.execute(query):
                snapshots[row.show_id].append(
                    TicketSnapshot(
                        show_id=row.show_id,
                        quantity_sold=int(row.quantity_sold or 0),
                        revenue=_decimal(row.revenue),
                        reported_at=_timestamp(row.reported_at),
                        sale_date=as_date(row.sale_date),
                    )
                )
        return dict(snapshots)


class SqlSpendStore:
    """Platform spend allocated through stop ad connections plus manual costs."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def fetch(self, scope: ScopeShows, start: date, end: date, *, include_manual: bool = True) -> list[AdSpendRecord]:
        if not scope.stop_ids and not scope.project_ids:
            return []
        with self.engine.connect() as conn:
            records = self._platform_spend(conn, scope.stop_ids, start, end)
            if include_manual:
                records.extend(self._manual_costs(conn, scope, start, end))
        return records

    def _platform_spend(self, conn, stop_ids: Sequence[str], start: date, end: date) -> list[AdSpendRecord]:
        if not stop_ids:
            return []
        c = tables.stop_ad_connections
        connections = conn.execute(select(c).where(c.c.stop_id.in_(list(stop_ids)))).mappings().all()

        # one query per campaign/adset; allocations to several stops in scope add up
        grouped: dict[tuple[str, str, str | None], Decimal] = defaultdict(Decimal)
        for connection in connections:
            adset_id = None
            if connection["connection_type"] == "adset":
                adset_id = connection["adset_id"]
                if not adset_id:
                    logger.warning(
                        "Adset connection %s for stop %s has no adset_id; skipping",
                        connection["id"],
                        connection["stop_id"],
                    )
                    continue
            key = (connection["source"], connection["campaign"], adset_id)
            grouped[key] += _decimal(connection["allocation_percent"])

        a = tables.ad_spend
        records: list[AdSpendRecord] = []
        for (source, campaign, adset_id), allocation in grouped.items():
            query = select(a.c.date, a.c.source, a.c.spend).where(
                a.c.source == source,
                a.c.campaign == campaign,
                a.c.date >= start,
                a.c.date <= end,
            )
            if adset_id:
                query = query.where(a.c.adset_id == adset_id)
            for row in conn.execute(query):
                records.append(
                    AdSpendRecord(
                        date=as_date(row.date),
                        amount=_decimal(row.spend) * allocation / 100,
                        source=row.source,
                    )
                )
        return records

    def _manual_costs(self, conn, scope: ScopeShows, start: date, end: date) -> list[AdSpendRecord]:
        m = tables.marketing_spend
        owners = []
        if ScopeLevel(scope.scope.level) in (ScopeLevel.ORGANIZATION, ScopeLevel.PROJECT) and scope.project_ids:
            owners.append(m.c.project_id.in_(scope.project_ids))
        if scope.stop_ids:
            owners.append(m.c.stop_id.in_(scope.stop_ids))
        if not owners:
            return []
        query = select(m.c.start_date, m.c.end_date, m.c.spend, m.c.category).where(
            m.c.source_type == "manual",
            m.c.start_date <= end,
            m.c.end_date >= start,
            or_(*owners),
        )
        records: list[AdSpendRecord] = []
        for row in conn.execute(query):
            records.extend(
                expand_manual_cost(
                    as_date(row.start_date),
                    as_date(row.end_date),
                    _decimal(row.spend),
                    start,
                    end,
                    category=row.category,
                )
            )
        return records
