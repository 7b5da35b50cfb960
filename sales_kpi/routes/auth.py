from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from sales_kpi.auth import hash_password, issue_token, verify_password
from sales_kpi.deps import get_app_settings, get_repository
from sales_kpi.errors import DuplicateEmailError
from sales_kpi.repositories import KpiRepository
from sales_kpi.schemas import RegisterPayload, LoginPayload, TokenResponse
from sales_kpi.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


def _public_user(user: dict) -> dict:
    return {"id": user["id"], "email": user["email"], "name": user["name"]}


@router.post("/register", response_model=TokenResponse)
async def register(
    payload: RegisterPayload,
    repository: KpiRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    try:
        user = await repository.create_user(payload.email, hash_password(payload.password), payload.name.strip())
    except DuplicateEmailError:
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("Registered user %s", user["id"])
    return {"token": issue_token(settings, user["id"], user["email"]), "user": _public_user(user), "data_count": 0}


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginPayload,
    repository: KpiRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    user = await repository.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    data_count = await repository.count_daily_entries(user["id"])
    return {
        "token": issue_token(settings, user["id"], user["email"]),
        "user": _public_user(user),
        "data_count": data_count,
    }
