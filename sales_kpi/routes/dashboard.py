from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from sales_kpi.auth import require_user_id
from sales_kpi.deps import get_repository, get_today
from sales_kpi.repositories import KpiRepository
from sales_kpi.services import kpi_engine

router = APIRouter()

STATS_WINDOW_DAYS = 30


@router.get("/dashboard/stats")
async def dashboard_stats(
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    start = today - timedelta(days=STATS_WINDOW_DAYS)
    rows = await repository.list_daily_entries(user_id, start.isoformat(), today.isoformat())
    return kpi_engine.period_stats(rows, today, days=STATS_WINDOW_DAYS)


@router.get("/performance/trends")
async def performance_trends(
    weeks: int = Query(12, ge=1, le=52),
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    start = kpi_engine.monday_of(today) - timedelta(weeks=weeks - 1)
    rows = await repository.list_daily_entries(user_id, start.isoformat(), today.isoformat())
    return {"weeks": weeks, "trends": kpi_engine.weekly_trends(rows, weeks=weeks)}
