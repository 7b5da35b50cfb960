from __future__ import annotations

from datetime import date as dt_date
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sales_kpi.constants import MAX_COUNT


def _blank_to_zero(value):
    if value is None or value == "":
        return 0
    return value


class RegisterPayload(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)


class LoginPayload(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str


class TokenResponse(BaseModel):
    token: str
    user: UserResponse
    data_count: int = 0


class DailyKpiPayload(BaseModel):
    date: dt_date
    emails_sent_manual: int = Field(0, ge=0, le=MAX_COUNT)
    emails_sent_outsource: int = Field(0, ge=0, le=MAX_COUNT)
    valid_emails_manual: int = Field(0, ge=0, le=MAX_COUNT)
    valid_emails_outsource: int = Field(0, ge=0, le=MAX_COUNT)
    replies_received: int = Field(0, ge=0, le=MAX_COUNT)
    meetings_scheduled: int = Field(0, ge=0, le=MAX_COUNT)
    deals_closed: int = Field(0, ge=0, le=MAX_COUNT)
    projects_created: int = Field(0, ge=0, le=MAX_COUNT)
    ongoing_projects: int = Field(0, ge=0, le=MAX_COUNT)
    slide_views: int = Field(0, ge=0, le=MAX_COUNT)
    video_views: int = Field(0, ge=0, le=MAX_COUNT)
    notes: str = ""

    @field_validator(
        "emails_sent_manual",
        "emails_sent_outsource",
        "valid_emails_manual",
        "valid_emails_outsource",
        "replies_received",
        "meetings_scheduled",
        "deals_closed",
        "projects_created",
        "ongoing_projects",
        "slide_views",
        "video_views",
        mode="before",
    )
    @classmethod
    def _counter_default(cls, value):
        return _blank_to_zero(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes_default(cls, value):
        return "" if value is None else value


class GoalsPayload(BaseModel):
    week_start: dt_date
    emails_manual_target: int = Field(0, ge=0, le=MAX_COUNT)
    emails_outsource_target: int = Field(0, ge=0, le=MAX_COUNT)
    valid_emails_manual_target: int = Field(0, ge=0, le=MAX_COUNT)
    valid_emails_outsource_target: int = Field(0, ge=0, le=MAX_COUNT)
    reply_target: int = Field(0, ge=0, le=MAX_COUNT)
    meetings_target: int = Field(0, ge=0, le=MAX_COUNT)
    deals_target: int = Field(0, ge=0, le=MAX_COUNT)
    projects_target: int = Field(0, ge=0, le=MAX_COUNT)
    ongoing_projects_target: int = Field(0, ge=0, le=MAX_COUNT)
    slide_views_target: int = Field(0, ge=0, le=MAX_COUNT)
    video_views_target: int = Field(0, ge=0, le=MAX_COUNT)
    reply_rate_target: float = Field(0, ge=0)
    meeting_rate_target: float = Field(0, ge=0)
    deal_rate_target: float = Field(0, ge=0)
    project_rate_target: float = Field(0, ge=0)
    slide_view_rate_target: float = Field(0, ge=0)
    video_view_rate_target: float = Field(0, ge=0)

    @field_validator("*", mode="before")
    @classmethod
    def _target_default(cls, value, info):
        if info.field_name == "week_start":
            return value
        return _blank_to_zero(value)


class WeeklyReviewPayload(BaseModel):
    week_start: dt_date
    week_end: Optional[dt_date] = None
    achievements: str = ""
    challenges: str = ""
    improvements: str = ""
    notes: str = ""


class SettingsPayload(BaseModel):
    # Older web clients post camelCase keys; unknown keys are rejected rather
    # than silently resetting preferences to defaults.
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    discord_webhook: str = Field("", max_length=500, alias="discordWebhook")
    email_notifications: bool = Field(True, alias="emailNotifications")
    weekly_reminders: bool = Field(True, alias="weeklyReminders")
    daily_reminders: bool = Field(True, alias="dailyReminders")
    reminder_time: str = Field("18:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$", alias="reminderTime")


class WeeklySummaryResponse(BaseModel):
    week_start: str
    week_end: str
    daily_data: List[Dict[str, Any]]
    totals: Dict[str, int]
    ongoing_projects: int
    rates: Dict[str, str]


class GoalProgressResponse(BaseModel):
    week_start: str
    goals: Dict[str, Any]
    actuals: Dict[str, int]
    progress: Dict[str, str]
    days_remaining: int
    # camelCase copy for web clients that read the older key.
    daysRemaining: int


class MessageResponse(BaseModel):
    message: str
