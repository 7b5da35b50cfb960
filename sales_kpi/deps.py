from __future__ import annotations

from datetime import date

from fastapi import Request

from sales_kpi.repositories import KpiRepository
from sales_kpi.settings import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> KpiRepository:
    return request.app.state.repository


def get_today() -> date:
    return date.today()
