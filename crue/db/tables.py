"""Table metadata for projects, shows, ticket reports and marketing spend."""

from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, MetaData, Numeric, Table, Text

metadata = MetaData()

projects = Table(
    "projects",
    metadata,
    Column("id", Text, primary_key=True),
    Column("organization_id", Text, nullable=False, index=True),
    Column("name", Text, nullable=False),
    Column("status", Text),
)

stops = Table(
    "stops",
    metadata,
    Column("id", Text, primary_key=True),
    Column("project_id", Text, ForeignKey("projects.id"), nullable=False, index=True),
    Column("name", Text, nullable=False),
    Column("city", Text),
    Column("capacity", Integer),
)

shows = Table(
    "shows",
    metadata,
    Column("id", Text, primary_key=True),
    Column("stop_id", Text, ForeignKey("stops.id"), nullable=False, index=True),
    Column("name", Text),
    Column("date", Date),
    Column("capacity", Integer),
    Column("sales_start_date", Date),
)

tickets = Table(
    "tickets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("show_id", Text, ForeignKey("shows.id"), nullable=False, index=True),
    Column("quantity_sold", Integer, nullable=False),
    Column("revenue", Numeric(14, 2), nullable=False),
    Column("reported_at", DateTime(timezone=True)),
    Column("sale_date", Date),
    Column("source", Text),
)

ad_spend = Table(
    "facebook_ads",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date", Date, nullable=False, index=True),
    Column("source", Text, nullable=False),
    Column("campaign", Text, nullable=False),
    Column("adset_id", Text),
    Column("adset_name", Text),
    Column("spend", Numeric(14, 2), nullable=False),
)

stop_ad_connections = Table(
    "stop_ad_connections",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("stop_id", Text, ForeignKey("stops.id"), nullable=False, index=True),
    Column("connection_type", Text, nullable=False),
    Column("source", Text, nullable=False),
    Column("campaign", Text, nullable=False),
    Column("adset_id", Text),
    Column("allocation_percent", Numeric(6, 2), nullable=False, default=100),
)

marketing_spend = Table(
    "marketing_spend",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Text, ForeignKey("projects.id")),
    Column("stop_id", Text, ForeignKey("stops.id")),
    Column("source_type", Text, nullable=False, default="manual"),
    Column("category", Text),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("spend", Numeric(14, 2), nullable=False),
)
