from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends

from sales_kpi.auth import require_user_id
from sales_kpi.deps import get_repository, get_today
from sales_kpi.repositories import KpiRepository
from sales_kpi.schemas import GoalsPayload, GoalProgressResponse, MessageResponse
from sales_kpi.services import kpi_engine

router = APIRouter()


@router.post("/kpi-goals", response_model=MessageResponse)
async def save_goals(
    payload: GoalsPayload,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    await repository.upsert_goals(user_id, payload.model_dump())
    return {"message": "Goals saved successfully"}


@router.get("/kpi-goals/current")
async def current_goals(
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    return await repository.get_current_goals(user_id)


@router.get("/kpi-goals/{week_start}")
async def goals_for_week(
    week_start: date,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    return await repository.get_goals(user_id, week_start.isoformat())


@router.get("/goals/progress/{week_start}", response_model=GoalProgressResponse)
async def goal_progress(
    week_start: date,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
    today: date = Depends(get_today),
):
    goals = await repository.get_goals(user_id, week_start.isoformat())
    _, week_end = kpi_engine.week_bounds(week_start)
    rows = await repository.list_daily_entries(user_id, week_start.isoformat(), week_end.isoformat())
    totals = kpi_engine.aggregate_totals(rows)
    progress = kpi_engine.compute_goal_progress(totals, goals, week_start=week_start, today=today)
    return {
        "week_start": week_start.isoformat(),
        "goals": goals,
        "actuals": totals.as_dict(),
        **progress.as_dict(),
    }
