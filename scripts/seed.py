"""Seed the database with a demo tour, ticket reports and ad spend."""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from decimal import Decimal

from dotenv import load_dotenv

from crue.db import tables
from crue.db.migrate import run_migrations
from crue.db.session import create_engine_from_env
from crue.utils.dates import today_in_tz

ORGANIZATION_ID = "demo-org"
PROJECT_ID = "demo-tour"
TICKET_PRICE = Decimal("450.00")

DEMO_STOPS = [
    {"id": "stop-oslo", "name": "Oslo Spektrum", "city": "Oslo", "capacity": 900},
    {"id": "stop-bergen", "name": "Grieghallen", "city": "Bergen", "capacity": 600},
]


def main() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    run_migrations(engine)
    today = today_in_tz()
    rng = random.Random(17)

    with engine.begin() as conn:
        conn.execute(
            tables.projects.insert(),
            {"id": PROJECT_ID, "organization_id": ORGANIZATION_ID, "name": "Demo Tour", "status": "active"},
        )
        for offset, stop in enumerate(DEMO_STOPS):
            conn.execute(tables.stops.insert(), {**stop, "project_id": PROJECT_ID})
            show_id = f"{stop['id']}-show"
            show_date = today + timedelta(days=30 + offset * 7)
            conn.execute(
                tables.shows.insert(),
                {
                    "id": show_id,
                    "stop_id": stop["id"],
                    "name": f"{stop['city']} night",
                    "date": show_date,
                    "capacity": stop["capacity"],
                    "sales_start_date": today - timedelta(days=60),
                },
            )

            # reports arrive every one to four days, so some intervals need estimating
            sold = 0
            day = today - timedelta(days=60)
            while day < today:
                sold = min(stop["capacity"], sold + rng.randint(0, 25) * 2)
                conn.execute(
                    tables.tickets.insert(),
                    {
                        "show_id": show_id,
                        "quantity_sold": sold,
                        "revenue": TICKET_PRICE * sold,
                        "reported_at": datetime.combine(day, datetime.min.time()) + timedelta(hours=8),
                        "source": "demo",
                    },
                )
                day += timedelta(days=rng.randint(1, 4))

            conn.execute(
                tables.stop_ad_connections.insert(),
                {
                    "stop_id": stop["id"],
                    "connection_type": "campaign",
                    "source": "facebook",
                    "campaign": "Demo Tour 2026",
                    "allocation_percent": Decimal("50"),
                },
            )

        for back in range(60):
            conn.execute(
                tables.ad_spend.insert(),
                {
                    "date": today - timedelta(days=back),
                    "source": "facebook",
                    "campaign": "Demo Tour 2026",
                    "spend": Decimal(rng.randint(200, 800)),
                },
            )
        conn.execute(
            tables.marketing_spend.insert(),
            {
                "project_id": PROJECT_ID,
                "category": "Plakater",
                "start_date": today - timedelta(days=30),
                "end_date": today - timedelta(days=1),
                "spend": Decimal("6000.00"),
            },
        )
    print(f"Seeded {ORGANIZATION_ID}/{PROJECT_ID} with {len(DEMO_STOPS)} stops")


if __name__ == "__main__":
    main()
