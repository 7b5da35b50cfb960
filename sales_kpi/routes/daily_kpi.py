from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends

from sales_kpi.auth import require_user_id
from sales_kpi.deps import get_app_settings, get_repository
from sales_kpi.repositories import KpiRepository
from sales_kpi.schemas import DailyKpiPayload, MessageResponse, WeeklySummaryResponse
from sales_kpi.services import kpi_engine
from sales_kpi.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/daily-kpi", response_model=MessageResponse)
async def save_daily_kpi(
    payload: DailyKpiPayload,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    await repository.upsert_daily_entry(user_id, payload.model_dump())
    logger.debug("Saved daily KPI for %s on %s", user_id, payload.date)
    return {"message": "Daily KPI saved successfully"}


@router.get("/daily-kpi/{day}")
async def get_daily_kpi(
    day: date,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    return await repository.get_daily_entry(user_id, day.isoformat())


@router.get("/weekly-summary/{week_start}", response_model=WeeklySummaryResponse)
async def weekly_summary(
    week_start: date,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    _, week_end = kpi_engine.week_bounds(week_start)
    rows = await repository.list_daily_entries(user_id, week_start.isoformat(), week_end.isoformat())
    totals = kpi_engine.aggregate_totals(rows)
    rates = kpi_engine.derive_rates(totals, settings.project_rate_basis)
    return {
        "week_start": week_start.isoformat(),
        "week_end": week_end.isoformat(),
        "daily_data": [kpi_engine.normalize_entry(row) for row in rows],
        "totals": totals.as_dict(),
        "ongoing_projects": kpi_engine.latest_ongoing_projects(rows),
        "rates": rates.as_dict(),
    }
