from __future__ import annotations

import logging

from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from sales_kpi.constants import (
    USERS_TABLE,
    DAILY_KPI_TABLE,
    GOALS_TABLE,
    REVIEWS_TABLE,
    USER_SETTINGS_TABLE,
    ENTRY_COUNTER_FIELDS,
    GOAL_COUNT_TARGETS,
    GOAL_RATE_TARGETS,
)

logger = logging.getLogger(__name__)


def _counter_ddl(columns: list[str], ddl: str) -> str:
    return ",\n".join(f"{column} {ddl}" for column in columns)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {DAILY_KPI_TABLE} (
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    {_counter_ddl(ENTRY_COUNTER_FIELDS, "INTEGER DEFAULT 0")},
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, date)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {GOALS_TABLE} (
                    user_id TEXT NOT NULL,
                    week_start TEXT NOT NULL,
                    {_counter_ddl(GOAL_COUNT_TARGETS, "INTEGER DEFAULT 0")},
                    {_counter_ddl(GOAL_RATE_TARGETS, "REAL DEFAULT 0")},
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, week_start)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {REVIEWS_TABLE} (
                    user_id TEXT NOT NULL,
                    week_start TEXT NOT NULL,
                    week_end TEXT NOT NULL,
                    achievements TEXT,
                    challenges TEXT,
                    improvements TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, week_start)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {USER_SETTINGS_TABLE} (
                    user_id TEXT PRIMARY KEY,
                    discord_webhook TEXT,
                    email_notifications INTEGER DEFAULT 1,
                    weekly_reminders INTEGER DEFAULT 1,
                    daily_reminders INTEGER DEFAULT 1,
                    reminder_time TEXT DEFAULT '18:00',
                    updated_at TEXT NOT NULL
                )
                """
            )
        )

    async def ensure_index(index_sql: str) -> None:
        try:
            async with engine.begin() as conn:
                await conn.execute(sql_text(index_sql))
        except SQLAlchemyError as exc:
            logger.warning("Index creation skipped: %s", exc)

    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{DAILY_KPI_TABLE}_date "
        f"ON {DAILY_KPI_TABLE} (date)"
    )
