from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from sales_kpi.auth import require_user_id
from sales_kpi.deps import get_app_settings, get_repository
from sales_kpi.repositories import KpiRepository
from sales_kpi.services import export_formatter
from sales_kpi.settings import Settings

router = APIRouter(prefix="/export")


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="End date must be after start date")


@router.get("/json")
async def export_json(
    start: date = Query(...),
    end: date = Query(...),
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    _check_range(start, end)
    rows = await repository.list_daily_entries(user_id, start.isoformat(), end.isoformat())
    return export_formatter.build_json_export(rows, start.isoformat(), end.isoformat(), settings.project_rate_basis)


@router.get("/csv")
async def export_csv(
    start: date = Query(...),
    end: date = Query(...),
    user_id: str = Depends(require_user_id),
    repository: KpiRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    _check_range(start, end)
    rows = await repository.list_daily_entries(user_id, start.isoformat(), end.isoformat())
    content = export_formatter.build_csv_export(rows, settings.project_rate_basis)
    filename = export_formatter.csv_filename(start.isoformat(), end.isoformat())
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
