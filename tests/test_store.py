from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from crue.db import tables
from crue.errors import StoreError
from crue.models import Scope, ScopeLevel
from crue.store import call_store, sql_stores
from crue.store.sql import SqlScopeStore, SqlSnapshotStore, SqlSpendStore

MARCH_1 = date(2024, 3, 1)
MARCH_11 = date(2024, 3, 11)


def test_resolve_organization(seeded_engine):
    resolved = SqlScopeStore(seeded_engine).resolve(Scope(level=ScopeLevel.ORGANIZATION, organization_id="org1"))
    assert resolved.project_ids == ["p1", "p2"]
    assert resolved.stop_ids == ["s1", "s2"]
    assert resolved.show_ids == ["sh1", "sh2"]
    assert resolved.shows[0].project_id == "p1"
    assert resolved.shows[0].show_date == date(2024, 4, 1)


def test_resolve_show_and_stop(seeded_engine):
    store = SqlScopeStore(seeded_engine)
    show = store.resolve(Scope(level=ScopeLevel.SHOW, show_id="sh2"))
    assert show.show_ids == ["sh2"]
    assert show.stop_ids == ["s2"]
    assert show.project_ids == ["p1"]

    stop = store.resolve(Scope(level=ScopeLevel.STOP, stop_id="s1"))
    assert stop.show_ids == ["sh1"]


def test_resolve_unknown_scope_is_empty(seeded_engine):
    resolved = SqlScopeStore(seeded_engine).resolve(Scope(level=ScopeLevel.PROJECT, project_id="p2"))
    assert resolved.shows == []
    assert resolved.stop_ids == []
    assert resolved.project_ids == ["p2"]


def test_snapshots_in_report_order(seeded_engine):
    snapshots = SqlSnapshotStore(seeded_engine).fetch(["sh1", "sh2"])
    assert [s.quantity_sold for s in snapshots["sh2"]] == [10, 15, 25]
    assert snapshots["sh1"][1].revenue == Decimal("30000")
    assert SqlSnapshotStore(seeded_engine).fetch([]) == {}


def test_snapshots_until_date(seeded_engine):
    snapshots = SqlSnapshotStore(seeded_engine).fetch(["sh1", "sh2"], reported_until=date(2024, 3, 2))
    assert len(snapshots["sh2"]) == 2
    assert len(snapshots["sh1"]) == 1


def test_spend_allocated_through_connections(seeded_engine):
    resolved = SqlScopeStore(seeded_engine).resolve(Scope(level=ScopeLevel.PROJECT, project_id="p1"))
    records = SqlSpendStore(seeded_engine).fetch(resolved, MARCH_1, MARCH_11)
    platform = [record for record in records if not record.is_manual]
    manual = [record for record in records if record.is_manual]

    assert sum(record.amount for record in platform) == Decimal("1210")
    assert len(manual) == 5
    assert sum(record.amount for record in manual) == Decimal("500")
    assert {record.source for record in manual} == {"Plakater"}


def test_stop_spend_excludes_project_costs(seeded_engine):
    resolved = SqlScopeStore(seeded_engine).resolve(Scope(level=ScopeLevel.STOP, stop_id="s1"))
    records = SqlSpendStore(seeded_engine).fetch(resolved, MARCH_1, MARCH_11)
    assert all(not record.is_manual for record in records)
    assert sum(record.amount for record in records) == Decimal("770")


def test_adset_connection_keeps_to_its_adset(seeded_engine):
    resolved = SqlScopeStore(seeded_engine).resolve(Scope(level=ScopeLevel.STOP, stop_id="s2"))
    records = SqlSpendStore(seeded_engine).fetch(resolved, MARCH_1, MARCH_1, include_manual=False)
    assert sum(record.amount for record in records) == Decimal("40")


def test_adset_connection_without_adset_is_skipped(seeded_engine, caplog):
    with seeded_engine.begin() as conn:
        conn.execute(tables.stop_ad_connections.insert(), {
            "stop_id": "s2", "connection_type": "adset", "source": "facebook",
            "campaign": "Spring", "adset_id": None, "allocation_percent": Decimal("100"),
        })
    resolved = SqlScopeStore(seeded_engine).resolve(Scope(level=ScopeLevel.STOP, stop_id="s2"))
    with caplog.at_level("WARNING", logger="crue.store.sql"):
        records = SqlSpendStore(seeded_engine).fetch(resolved, MARCH_1, MARCH_1, include_manual=False)
    assert sum(record.amount for record in records) == Decimal("40")
    assert "no adset_id" in caplog.text


@pytest.mark.asyncio
async def test_call_store_runs_blocking_calls(seeded_engine):
    stores = sql_stores(seeded_engine)
    resolved = await call_store(stores.scopes.resolve, Scope(level=ScopeLevel.STOP, stop_id="s2"))
    assert resolved.show_ids == ["sh2"]


@pytest.mark.asyncio
async def test_call_store_retries_then_raises_store_error(monkeypatch):
    monkeypatch.setattr("crue.utils.retry.BASE_DELAY", 0)
    calls = []

    def broken():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(StoreError):
        await call_store(broken)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_call_store_recovers_from_transient_failure(monkeypatch):
    monkeypatch.setattr("crue.utils.retry.BASE_DELAY", 0)
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise OperationalError("SELECT 1", {}, Exception("timeout"))
        return "ok"

    assert await call_store(flaky) == "ok"
