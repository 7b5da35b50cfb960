from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4

from sqlalchemy import text as sql_text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from sales_kpi.constants import (
    USERS_TABLE,
    DAILY_KPI_TABLE,
    GOALS_TABLE,
    REVIEWS_TABLE,
    USER_SETTINGS_TABLE,
    ENTRY_COLUMNS,
    ENTRY_COUNTER_FIELDS,
    GOAL_COLUMNS,
    GOAL_COUNT_TARGETS,
    GOAL_RATE_TARGETS,
    REVIEW_TEXT_FIELDS,
    DEFAULT_USER_SETTINGS,
)
from sales_kpi.errors import DuplicateEmailError, StorageError
from sales_kpi.services.kpi_engine import normalize_entry, to_count

logger = logging.getLogger(__name__)

USER_COLUMNS = ["id", "email", "password_hash", "name", "created_at"]
REVIEW_COLUMNS = ["week_start", "week_end", *REVIEW_TEXT_FIELDS]
SETTINGS_COLUMNS = list(DEFAULT_USER_SETTINGS)


class KpiRepository(Protocol):
    """Storage operations the API layer depends on.

    Dates are ISO ``YYYY-MM-DD`` strings. Lookups that find nothing return
    ``{}`` (or ``None`` for users); upserts replace the row for their key.
    """

    async def create_user(self, email: str, password_hash: str, name: str) -> dict: ...
    async def get_user_by_email(self, email: str) -> dict | None: ...
    async def get_user(self, user_id: str) -> dict | None: ...

    async def upsert_daily_entry(self, user_id: str, entry: dict) -> dict: ...
    async def get_daily_entry(self, user_id: str, day_iso: str) -> dict: ...
    async def list_daily_entries(self, user_id: str, start_iso: str, end_iso: str) -> list[dict]: ...
    async def count_daily_entries(self, user_id: str) -> int: ...

    async def upsert_goals(self, user_id: str, goals: dict) -> dict: ...
    async def get_goals(self, user_id: str, week_start_iso: str) -> dict: ...
    async def get_current_goals(self, user_id: str) -> dict: ...

    async def upsert_weekly_review(self, user_id: str, review: dict) -> dict: ...
    async def get_weekly_review(self, user_id: str, week_start_iso: str) -> dict: ...

    async def get_settings(self, user_id: str) -> dict: ...
    async def save_settings(self, user_id: str, settings: dict) -> dict: ...


def new_id() -> str:
    return uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_goals_row(row: dict) -> dict:
    if not row:
        return {}
    payload = {"week_start": str(row.get("week_start") or "")[:10]}
    for column in GOAL_COUNT_TARGETS:
        payload[column] = to_count(row.get(column))
    for column in GOAL_RATE_TARGETS:
        try:
            payload[column] = float(row.get(column) or 0)
        except (TypeError, ValueError):
            payload[column] = 0.0
    return payload


def normalize_review_row(row: dict) -> dict:
    if not row:
        return {}
    payload = {
        "week_start": str(row.get("week_start") or "")[:10],
        "week_end": str(row.get("week_end") or "")[:10],
    }
    for column in REVIEW_TEXT_FIELDS:
        payload[column] = str(row.get(column) or "")
    return payload


def normalize_settings_row(row: dict | None) -> dict:
    if not row:
        return dict(DEFAULT_USER_SETTINGS)
    return {
        "discord_webhook": str(row.get("discord_webhook") or ""),
        "email_notifications": bool(row.get("email_notifications")),
        "weekly_reminders": bool(row.get("weekly_reminders")),
        "daily_reminders": bool(row.get("daily_reminders")),
        "reminder_time": str(row.get("reminder_time") or DEFAULT_USER_SETTINGS["reminder_time"]),
    }


def _upsert_sql(table: str, key_columns: list[str], value_columns: list[str], stamp_columns: list[str]) -> str:
    columns = key_columns + value_columns + stamp_columns
    placeholders = ", ".join(f":{col}" for col in columns)
    refreshed = value_columns + [col for col in stamp_columns if col != "created_at"]
    updates = ", ".join(f"{col}=EXCLUDED.{col}" for col in refreshed)
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT({', '.join(key_columns)}) DO UPDATE SET {updates}"
    )


class SqlKpiRepository:
    """``KpiRepository`` over an async SQLAlchemy engine.

    The SQL sticks to ``INSERT ... ON CONFLICT ... DO UPDATE`` and plain
    selects, so SQLite (aiosqlite) and PostgreSQL (asyncpg) share it.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Database operation failed")
            raise StorageError("Database operation failed") from exc

    async def _fetch_one(self, sql: str, params: dict) -> dict | None:
        async with self._session() as session:
            row = (await session.execute(sql_text(sql), params)).mappings().fetchone()
        return dict(row) if row else None

    async def _write(self, sql: str, params: dict) -> None:
        async with self._session() as session:
            await session.execute(sql_text(sql), params)
            await session.commit()

    async def create_user(self, email: str, password_hash: str, name: str) -> dict:
        payload = {
            "id": new_id(),
            "email": email.strip().lower(),
            "password_hash": password_hash,
            "name": name,
            "created_at": utc_now_iso(),
        }
        try:
            await self._write(
                f"INSERT INTO {USERS_TABLE} ({', '.join(USER_COLUMNS)}) "
                f"VALUES ({', '.join(f':{col}' for col in USER_COLUMNS)})",
                payload,
            )
        except IntegrityError as exc:
            raise DuplicateEmailError(payload["email"]) from exc
        return payload

    async def get_user_by_email(self, email: str) -> dict | None:
        return await self._fetch_one(
            f"SELECT {', '.join(USER_COLUMNS)} FROM {USERS_TABLE} WHERE email = :email",
            {"email": email.strip().lower()},
        )

    async def get_user(self, user_id: str) -> dict | None:
        return await self._fetch_one(
            f"SELECT {', '.join(USER_COLUMNS)} FROM {USERS_TABLE} WHERE id = :id",
            {"id": user_id},
        )

    async def upsert_daily_entry(self, user_id: str, entry: dict) -> dict:
        clean = normalize_entry(entry)
        now = utc_now_iso()
        await self._write(
            _upsert_sql(
                DAILY_KPI_TABLE,
                ["user_id", "date"],
                [*ENTRY_COUNTER_FIELDS, "notes"],
                ["created_at", "updated_at"],
            ),
            {"user_id": user_id, **clean, "created_at": now, "updated_at": now},
        )
        return clean

    async def get_daily_entry(self, user_id: str, day_iso: str) -> dict:
        row = await self._fetch_one(
            f"SELECT {', '.join(ENTRY_COLUMNS)} FROM {DAILY_KPI_TABLE} "
            "WHERE user_id = :user_id AND date = :date",
            {"user_id": user_id, "date": day_iso},
        )
        return normalize_entry(row) if row else {}

    async def list_daily_entries(self, user_id: str, start_iso: str, end_iso: str) -> list[dict]:
        async with self._session() as session:
            rows = (await session.execute(
                sql_text(
                    f"""
                    SELECT {', '.join(ENTRY_COLUMNS)}
                    FROM {DAILY_KPI_TABLE}
                    WHERE user_id = :user_id
                      AND date BETWEEN :start_date AND :end_date
                    ORDER BY date
                    """
                ),
                {"user_id": user_id, "start_date": start_iso, "end_date": end_iso},
            )).mappings().all()
        return [normalize_entry(row) for row in rows]

    async def count_daily_entries(self, user_id: str) -> int:
        row = await self._fetch_one(
            f"SELECT COUNT(*) AS total FROM {DAILY_KPI_TABLE} WHERE user_id = :user_id",
            {"user_id": user_id},
        )
        return int(row["total"] or 0) if row else 0

    async def upsert_goals(self, user_id: str, goals: dict) -> dict:
        clean = normalize_goals_row(goals)
        now = utc_now_iso()
        await self._write(
            _upsert_sql(
                GOALS_TABLE,
                ["user_id", "week_start"],
                [*GOAL_COUNT_TARGETS, *GOAL_RATE_TARGETS],
                ["created_at", "updated_at"],
            ),
            {"user_id": user_id, **clean, "created_at": now, "updated_at": now},
        )
        return clean

    async def get_goals(self, user_id: str, week_start_iso: str) -> dict:
        row = await self._fetch_one(
            f"SELECT {', '.join(GOAL_COLUMNS)} FROM {GOALS_TABLE} "
            "WHERE user_id = :user_id AND week_start = :week_start",
            {"user_id": user_id, "week_start": week_start_iso},
        )
        return normalize_goals_row(row or {})

    async def get_current_goals(self, user_id: str) -> dict:
        row = await self._fetch_one(
            f"SELECT {', '.join(GOAL_COLUMNS)} FROM {GOALS_TABLE} "
            "WHERE user_id = :user_id ORDER BY week_start DESC LIMIT 1",
            {"user_id": user_id},
        )
        return normalize_goals_row(row or {})

    async def upsert_weekly_review(self, user_id: str, review: dict) -> dict:
        clean = normalize_review_row(review)
        now = utc_now_iso()
        await self._write(
            _upsert_sql(
                REVIEWS_TABLE,
                ["user_id", "week_start"],
                ["week_end", *REVIEW_TEXT_FIELDS],
                ["created_at", "updated_at"],
            ),
            {"user_id": user_id, **clean, "created_at": now, "updated_at": now},
        )
        return clean

    async def get_weekly_review(self, user_id: str, week_start_iso: str) -> dict:
        row = await self._fetch_one(
            f"SELECT {', '.join(REVIEW_COLUMNS)} FROM {REVIEWS_TABLE} "
            "WHERE user_id = :user_id AND week_start = :week_start",
            {"user_id": user_id, "week_start": week_start_iso},
        )
        return normalize_review_row(row or {})

    async def get_settings(self, user_id: str) -> dict:
        row = await self._fetch_one(
            f"SELECT {', '.join(SETTINGS_COLUMNS)} FROM {USER_SETTINGS_TABLE} WHERE user_id = :user_id",
            {"user_id": user_id},
        )
        return normalize_settings_row(row)

    async def save_settings(self, user_id: str, settings: dict) -> dict:
        clean = normalize_settings_row({**DEFAULT_USER_SETTINGS, **(settings or {})})
        params = dict(clean)
        for flag in ("email_notifications", "weekly_reminders", "daily_reminders"):
            params[flag] = int(clean[flag])
        await self._write(
            _upsert_sql(USER_SETTINGS_TABLE, ["user_id"], SETTINGS_COLUMNS, ["updated_at"]),
            {"user_id": user_id, **params, "updated_at": utc_now_iso()},
        )
        return clean
