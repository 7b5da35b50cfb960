"""KPI aggregation: totals, conversion rates, goal progress and trend buckets.

Everything here is pure. Entries are plain mappings shaped like ``daily_kpi``
rows; missing, negative or non-numeric counters count as zero so a malformed
row never breaks a summary.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Any, Iterable, Mapping

from sales_kpi.constants import (
    ENTRY_COLUMNS,
    ENTRY_COUNTER_FIELDS,
    TOTALS_SOURCE_FIELDS,
    PROGRESS_TARGETS,
    PROJECT_RATE_BASES,
)


@dataclass(frozen=True)
class Totals:
    emails_manual: int = 0
    emails_outsource: int = 0
    valid_emails_manual: int = 0
    valid_emails_outsource: int = 0
    replies: int = 0
    meetings: int = 0
    deals: int = 0
    projects: int = 0
    slide_views: int = 0
    video_views: int = 0

    @property
    def emails(self) -> int:
        return self.emails_manual + self.emails_outsource

    @property
    def valid_emails(self) -> int:
        return self.valid_emails_manual + self.valid_emails_outsource

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Rates:
    reply_rate: str = "0"
    meeting_rate: str = "0"
    deal_rate: str = "0"
    project_rate: str = "0"
    slide_view_rate: str = "0"
    video_view_rate: str = "0"

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Progress:
    metrics: dict
    days_remaining: int

    def as_dict(self) -> dict:
        return {
            "progress": dict(self.metrics),
            "days_remaining": self.days_remaining,
            "daysRemaining": self.days_remaining,
        }


def to_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return int(bool(value))
    try:
        number = int(value)
    except (TypeError, ValueError):
        try:
            number = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0
    return number if number > 0 else 0


def _to_target(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def percentage(numerator: float, denominator: float, digits: int = 2) -> str:
    if not denominator or denominator <= 0:
        return "0"
    return f"{numerator / denominator * 100:.{digits}f}"


def parse_iso_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value or "").strip()[:10])


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_bounds(week_start: date) -> tuple[date, date]:
    return week_start, week_start + timedelta(days=6)


def normalize_entry(entry: Mapping[str, Any]) -> dict:
    row = {"date": str(entry.get("date") or "")[:10]}
    for field in ENTRY_COUNTER_FIELDS:
        row[field] = to_count(entry.get(field))
    row["notes"] = str(entry.get("notes") or "")
    return {key: row[key] for key in ENTRY_COLUMNS}


def aggregate_totals(entries: Iterable[Mapping[str, Any]]) -> Totals:
    sums = {name: 0 for name in TOTALS_SOURCE_FIELDS}
    for entry in entries or []:
        for name, column in TOTALS_SOURCE_FIELDS.items():
            sums[name] += to_count(entry.get(column))
    return Totals(**sums)


def latest_ongoing_projects(entries: Iterable[Mapping[str, Any]]) -> int:
    latest = None
    for entry in entries or []:
        key = str(entry.get("date") or "")
        if latest is None or key >= str(latest.get("date") or ""):
            latest = entry
    if latest is None:
        return 0
    return to_count(latest.get("ongoing_projects"))


def derive_rates(totals: Totals, project_rate_basis: str = "deals") -> Rates:
    if project_rate_basis not in PROJECT_RATE_BASES:
        raise ValueError(f"Unknown project rate basis: {project_rate_basis}")
    project_denominator = totals.deals if project_rate_basis == "deals" else totals.meetings
    valid = totals.valid_emails
    return Rates(
        reply_rate=percentage(totals.replies, valid),
        meeting_rate=percentage(totals.meetings, totals.replies),
        deal_rate=percentage(totals.deals, totals.meetings),
        project_rate=percentage(totals.projects, project_denominator),
        slide_view_rate=percentage(totals.slide_views, valid),
        video_view_rate=percentage(totals.video_views, valid),
    )


def days_remaining(week_start: date, today: date | None = None) -> int:
    today = today or date.today()
    _, week_end = week_bounds(week_start)
    return max(0, (week_end - today).days + 1)


def compute_goal_progress(
    totals: Totals,
    goals: Mapping[str, Any] | None,
    week_start: date | None = None,
    today: date | None = None,
) -> Progress:
    """Compare weekly actuals against targets.

    A metric whose target is zero, missing or unreadable reports ``"0"``.
    ``week_start`` falls back to the goals row; with neither, no days remain.
    """
    goals = goals or {}
    actuals = totals.as_dict()
    metrics = {}
    for name, target_column in PROGRESS_TARGETS.items():
        target = _to_target(goals.get(target_column))
        metrics[name] = percentage(actuals[name], target, digits=1) if target > 0 else "0"

    if week_start is None and goals.get("week_start"):
        try:
            week_start = parse_iso_date(goals["week_start"])
        except ValueError:
            week_start = None
    remaining = days_remaining(week_start, today) if week_start else 0
    return Progress(metrics=metrics, days_remaining=remaining)


def iso_week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def weekly_trends(entries: Iterable[Mapping[str, Any]], weeks: int = 12) -> list[dict]:
    buckets: dict[str, list] = {}
    for entry in entries or []:
        try:
            day = parse_iso_date(entry.get("date"))
        except ValueError:
            continue
        buckets.setdefault(iso_week_key(day), []).append(entry)

    trends = []
    for key in sorted(buckets, reverse=True)[: max(0, weeks)]:
        totals = aggregate_totals(buckets[key])
        trends.append(
            {
                "week": key,
                "emails": totals.emails,
                "valid_emails": totals.valid_emails,
                "replies": totals.replies,
                "meetings": totals.meetings,
                "deals": totals.deals,
                "projects": totals.projects,
                "reply_rate": percentage(totals.replies, totals.valid_emails),
                "meeting_rate": percentage(totals.meetings, totals.replies),
            }
        )
    return trends


def _activity_summary(totals: Totals) -> dict:
    return {"emails": totals.emails, "meetings": totals.meetings, "deals": totals.deals}


def period_stats(entries: Iterable[Mapping[str, Any]], today: date, days: int = 30) -> dict:
    window_start = today - timedelta(days=days)
    this_week = monday_of(today)
    last_week = this_week - timedelta(days=7)

    in_window, current, previous, daily = [], [], [], []
    for entry in entries or []:
        try:
            day = parse_iso_date(entry.get("date"))
        except ValueError:
            continue
        if not (window_start <= day <= today):
            continue
        in_window.append(entry)
        if day >= this_week:
            current.append(entry)
        elif day >= last_week:
            previous.append(entry)
        row_totals = aggregate_totals([entry])
        daily.append(
            {
                "date": day.isoformat(),
                "emails": row_totals.emails,
                "valid_emails": row_totals.valid_emails,
                "replies": row_totals.replies,
                "meetings": row_totals.meetings,
                "deals": row_totals.deals,
                "projects": row_totals.projects,
            }
        )

    window_totals = aggregate_totals(in_window)
    return {
        "period": {"start": window_start.isoformat(), "end": today.isoformat()},
        "last_30_days": {
            "total_emails": window_totals.emails,
            "total_meetings": window_totals.meetings,
            "total_deals": window_totals.deals,
            "total_projects": window_totals.projects,
        },
        "daily_data": sorted(daily, key=lambda item: item["date"]),
        "current_week": _activity_summary(aggregate_totals(current)),
        "last_week": _activity_summary(aggregate_totals(previous)),
    }
