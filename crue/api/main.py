"""FastAPI application exposing the ticket sales analytics."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from crue.db.session import create_engine_from_env
from crue.errors import StoreError
from crue.logic.daily import remove_estimations, to_cumulative
from crue.models import DistributionWeight, Scope, ScopeLevel
from crue.service import AnalyticsService, cache_from_env

logger = logging.getLogger(__name__)

load_dotenv()

app = FastAPI(title="Crue Analytics API")


class ScopeRequest(BaseModel):
    level: ScopeLevel
    organization_id: str | None = None
    project_id: str | None = None
    stop_id: str | None = None
    show_id: str | None = None

    def to_scope(self) -> Scope:
        return Scope(
            level=self.level,
            organization_id=self.organization_id,
            project_id=self.project_id,
            stop_id=self.stop_id,
            show_id=self.show_id,
        )


class DailySeriesRequest(BaseModel):
    scope: ScopeRequest
    start: date
    end: date
    weight: DistributionWeight = DistributionWeight.EVEN
    group_by: str = "scope"
    cumulative: bool = False
    include_estimates: bool = True


class PeriodMetricsRequest(BaseModel):
    scope: ScopeRequest
    start: date
    end: date
    include_mva: bool = True
    include_daily: bool = False


class EfficiencyRequest(BaseModel):
    scope: ScopeRequest
    start: date
    end: date
    analysis_type: str = "full"
    include_mva: bool = True


class TimingRequest(BaseModel):
    scope: ScopeRequest
    analysis_type: str = "full"
    days_out_buckets: list[int] | None = Field(default=None)
    compare_shows: bool = False


def get_engine() -> Engine:
    return create_engine_from_env()


def get_service(engine: Engine = Depends(get_engine)) -> AnalyticsService:
    return AnalyticsService.from_engine(engine, cache=cache_from_env())


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.warning("Store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Storage unavailable"})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.post("/series/daily")
async def daily_series(
    payload: DailySeriesRequest, service: AnalyticsService = Depends(get_service)
) -> dict[str, Any]:
    points = await service.get_daily_series(
        payload.scope.to_scope(),
        payload.start,
        payload.end,
        weight=payload.weight,
        group_by=payload.group_by,
    )
    if not payload.include_estimates:
        points = remove_estimations(points)
    if payload.cumulative:
        points = to_cumulative(points)
    return {"points": [dataclasses.asdict(point) for point in points]}


@app.post("/metrics/period")
async def period_metrics(
    payload: PeriodMetricsRequest, service: AnalyticsService = Depends(get_service)
) -> dict[str, Any]:
    metrics = await service.get_period_metrics(
        payload.scope.to_scope(),
        payload.start,
        payload.end,
        include_mva=payload.include_mva,
        include_daily=payload.include_daily,
    )
    return dataclasses.asdict(metrics)


@app.post("/analysis/efficiency")
async def efficiency(payload: EfficiencyRequest, service: AnalyticsService = Depends(get_service)) -> dict[str, Any]:
    report = await service.analyze_efficiency(
        payload.scope.to_scope(),
        payload.start,
        payload.end,
        analysis_type=payload.analysis_type,
        include_mva=payload.include_mva,
    )
    return dataclasses.asdict(report)


@app.post("/analysis/timing")
async def sales_timing(payload: TimingRequest, service: AnalyticsService = Depends(get_service)) -> dict[str, Any]:
    report = await service.analyze_sales_timing(
        payload.scope.to_scope(),
        analysis_type=payload.analysis_type,
        days_out_buckets=payload.days_out_buckets,
        compare_shows=payload.compare_shows,
    )
    return dataclasses.asdict(report)
