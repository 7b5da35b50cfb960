from __future__ import annotations

from sales_kpi.constants import DEFAULT_USER_SETTINGS
from sales_kpi.errors import DuplicateEmailError
from sales_kpi.repositories import (
    new_id,
    utc_now_iso,
    normalize_goals_row,
    normalize_review_row,
    normalize_settings_row,
)
from sales_kpi.services.kpi_engine import normalize_entry


class InMemoryKpiRepository:
    """Dict-backed ``KpiRepository``; nothing survives the process."""

    def __init__(self):
        self._users: dict[str, dict] = {}
        self._entries: dict[tuple[str, str], dict] = {}
        self._goals: dict[tuple[str, str], dict] = {}
        self._reviews: dict[tuple[str, str], dict] = {}
        self._settings: dict[str, dict] = {}

    async def create_user(self, email: str, password_hash: str, name: str) -> dict:
        email = email.strip().lower()
        if await self.get_user_by_email(email):
            raise DuplicateEmailError(email)
        user = {
            "id": new_id(),
            "email": email,
            "password_hash": password_hash,
            "name": name,
            "created_at": utc_now_iso(),
        }
        self._users[user["id"]] = user
        return dict(user)

    async def get_user_by_email(self, email: str) -> dict | None:
        email = email.strip().lower()
        for user in self._users.values():
            if user["email"] == email:
                return dict(user)
        return None

    async def get_user(self, user_id: str) -> dict | None:
        user = self._users.get(user_id)
        return dict(user) if user else None

    async def upsert_daily_entry(self, user_id: str, entry: dict) -> dict:
        clean = normalize_entry(entry)
        self._entries[(user_id, clean["date"])] = clean
        return dict(clean)

    async def get_daily_entry(self, user_id: str, day_iso: str) -> dict:
        return dict(self._entries.get((user_id, day_iso), {}))

    async def list_daily_entries(self, user_id: str, start_iso: str, end_iso: str) -> list[dict]:
        rows = [
            dict(entry)
            for (owner, day), entry in self._entries.items()
            if owner == user_id and start_iso <= day <= end_iso
        ]
        return sorted(rows, key=lambda row: row["date"])

    async def count_daily_entries(self, user_id: str) -> int:
        return sum(1 for owner, _ in self._entries if owner == user_id)

    async def upsert_goals(self, user_id: str, goals: dict) -> dict:
        clean = normalize_goals_row(goals)
        self._goals[(user_id, clean["week_start"])] = clean
        return dict(clean)

    async def get_goals(self, user_id: str, week_start_iso: str) -> dict:
        return dict(self._goals.get((user_id, week_start_iso), {}))

    async def get_current_goals(self, user_id: str) -> dict:
        weeks = sorted(week for owner, week in self._goals if owner == user_id)
        if not weeks:
            return {}
        return dict(self._goals[(user_id, weeks[-1])])

    async def upsert_weekly_review(self, user_id: str, review: dict) -> dict:
        clean = normalize_review_row(review)
        self._reviews[(user_id, clean["week_start"])] = clean
        return dict(clean)

    async def get_weekly_review(self, user_id: str, week_start_iso: str) -> dict:
        return dict(self._reviews.get((user_id, week_start_iso), {}))

    async def get_settings(self, user_id: str) -> dict:
        return normalize_settings_row(self._settings.get(user_id))

    async def save_settings(self, user_id: str, settings: dict) -> dict:
        clean = normalize_settings_row({**DEFAULT_USER_SETTINGS, **(settings or {})})
        self._settings[user_id] = clean
        return dict(clean)
