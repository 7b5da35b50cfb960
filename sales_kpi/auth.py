from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException

from sales_kpi.deps import get_app_settings, get_repository
from sales_kpi.repositories import KpiRepository
from sales_kpi.settings import Settings

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def issue_token(settings: Settings, user_id: str, email: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(settings: Settings, token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])


async def require_user_id(
    authorization: str | None = Header(default=None, alias="Authorization"),
    settings: Settings = Depends(get_app_settings),
    repository: KpiRepository = Depends(get_repository),
) -> str:
    """Resolve the bearer token to the id of an existing user, else 401."""
    scheme, _, token = str(authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(settings, token.strip())
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = payload.get("sub")
    if not user_id or await repository.get_user(str(user_id)) is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return str(user_id)
