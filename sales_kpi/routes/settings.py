from __future__ import annotations

from fastapi import APIRouter, Depends

from sales_kpi.auth import require_user_id
from sales_kpi.deps import get_repository
from sales_kpi.repositories import KpiRepository
from sales_kpi.schemas import SettingsPayload

router = APIRouter()


@router.get("/settings")
async def get_user_settings(
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    return await repository.get_settings(user_id)


@router.post("/settings")
async def save_user_settings(
    payload: SettingsPayload,
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
):
    saved = await repository.save_settings(user_id, payload.model_dump())
    return {"success": True, "message": "Settings saved successfully", "settings": saved}
