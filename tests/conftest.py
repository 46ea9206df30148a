from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from crue.db import tables
from crue.db.migrate import run_migrations
from crue.models import TicketSnapshot

START = date(2024, 3, 1)


def report(show_id, day, sold, revenue=None, *, hour=9, sale_date=None):
    return TicketSnapshot(
        show_id=show_id,
        quantity_sold=sold,
        revenue=Decimal(revenue if revenue is not None else sold * 100),
        reported_at=datetime.combine(day, datetime.min.time()) + timedelta(hours=hour),
        sale_date=sale_date,
    )


@pytest.fixture()
def engine():
    # one shared connection so executor threads see the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def seeded_engine(engine):
    with engine.begin() as conn:
        conn.execute(tables.projects.insert(), [
            {"id": "p1", "organization_id": "org1", "name": "Spring Tour", "status": "active"},
            {"id": "p2", "organization_id": "org1", "name": "Empty Tour", "status": "planned"},
        ])
        conn.execute(tables.stops.insert(), [
            {"id": "s1", "project_id": "p1", "name": "Oslo", "city": "Oslo", "capacity": 500},
            {"id": "s2", "project_id": "p1", "name": "Bergen", "city": "Bergen", "capacity": 300},
        ])
        conn.execute(tables.shows.insert(), [
            {"id": "sh1", "stop_id": "s1", "name": "Oslo 1", "date": date(2024, 4, 1), "capacity": 500},
            {"id": "sh2", "stop_id": "s2", "name": "Bergen 1", "date": date(2024, 4, 5), "capacity": 300},
        ])
        conn.execute(tables.tickets.insert(), [
            # sh1: 100 -> 300 over ten days
            {"show_id": "sh1", "quantity_sold": 100, "revenue": Decimal("10000.00"),
             "reported_at": datetime(2024, 3, 1, 9), "source": "test"},
            {"show_id": "sh1", "quantity_sold": 300, "revenue": Decimal("30000.00"),
             "reported_at": datetime(2024, 3, 11, 9), "source": "test"},
            # sh2: daily reports
            {"show_id": "sh2", "quantity_sold": 10, "revenue": Decimal("1000.00"),
             "reported_at": datetime(2024, 3, 1, 9), "source": "test"},
            {"show_id": "sh2", "quantity_sold": 15, "revenue": Decimal("1500.00"),
             "reported_at": datetime(2024, 3, 2, 9), "source": "test"},
            {"show_id": "sh2", "quantity_sold": 25, "revenue": Decimal("2500.00"),
             "reported_at": datetime(2024, 3, 3, 9), "source": "test"},
        ])
        conn.execute(tables.stop_ad_connections.insert(), [
            {"stop_id": "s1", "connection_type": "campaign", "source": "facebook",
             "campaign": "Spring", "adset_id": None, "allocation_percent": Decimal("50")},
            {"stop_id": "s2", "connection_type": "adset", "source": "facebook",
             "campaign": "Spring", "adset_id": "a2", "allocation_percent": Decimal("100")},
        ])
        spend_rows = []
        for offset in range(11):
            day = START + timedelta(days=offset)
            spend_rows.append({"date": day, "source": "facebook", "campaign": "Spring",
                               "adset_id": "a1", "spend": Decimal("100.00")})
            spend_rows.append({"date": day, "source": "facebook", "campaign": "Spring",
                               "adset_id": "a2", "spend": Decimal("40.00")})
        spend_rows.append({"date": START, "source": "facebook", "campaign": "Other",
                           "adset_id": "x", "spend": Decimal("999.00")})
        conn.execute(tables.ad_spend.insert(), spend_rows)
        conn.execute(tables.marketing_spend.insert(), [
            {"project_id": "p1", "stop_id": None, "category": "Plakater",
             "start_date": date(2024, 2, 25), "end_date": date(2024, 3, 5), "spend": Decimal("1000.00")},
        ])
    return engine
