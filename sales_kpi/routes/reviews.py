from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from sales_kpi.auth import require_user_id
from sales_kpi.deps import get_repository
from sales_kpi.repositories import KpiRepository
from sales_kpi.schemas import WeeklyReviewPayload, MessageResponse
from sales_kpi.services import kpi_engine

router = APIRouter()


@router.post("/weekly-review", response_model=MessageResponse)
async def save_weekly_review(
    payload: WeeklyReviewPayload,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    week_end = payload.week_end or kpi_engine.week_bounds(payload.week_start)[1]
    if week_end < payload.week_start:
        raise HTTPException(status_code=400, detail="week_end must not be before week_start")
    data = payload.model_dump()
    data["week_end"] = week_end
    await repository.upsert_weekly_review(user_id, data)
    return {"message": "Review saved successfully"}


@router.get("/weekly-review/{week_start}")
async def get_weekly_review(
    week_start: date,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    return await repository.get_weekly_review(user_id, week_start.isoformat())
