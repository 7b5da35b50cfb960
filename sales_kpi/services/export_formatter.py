from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sales_kpi.services.kpi_engine import Totals, aggregate_totals, derive_rates, normalize_entry

CSV_HEADERS = [
    "Date",
    "Emails Sent (Manual)",
    "Emails Sent (Outsource)",
    "Valid Emails (Manual)",
    "Valid Emails (Outsource)",
    "Replies",
    "Reply Rate (%)",
    "Meetings",
    "Meeting Rate (%)",
    "Deals",
    "Deal Rate (%)",
    "Projects",
    "Project Rate (%)",
    "Ongoing Projects",
    "Slide Views",
    "Slide View Rate (%)",
    "Video Views",
    "Video View Rate (%)",
    "Notes",
]

TOTAL_ROW_LABEL = "Total"


def export_totals(totals: Totals, project_rate_basis: str = "deals") -> dict:
    rates = derive_rates(totals, project_rate_basis)
    payload = {f"total_{name}": value for name, value in totals.as_dict().items()}
    payload.update({f"avg_{name}": value for name, value in rates.as_dict().items()})
    return payload


def build_json_export(
    entries: Iterable[Mapping[str, Any]],
    start: str,
    end: str,
    project_rate_basis: str = "deals",
) -> dict:
    rows = sorted((normalize_entry(entry) for entry in entries), key=lambda row: row["date"])
    return {
        "export_date": datetime.now(timezone.utc).isoformat(),
        "period": {"start": start, "end": end},
        "data": rows,
        "totals": export_totals(aggregate_totals(rows), project_rate_basis),
    }


def _csv_line(row: Mapping[str, Any], project_rate_basis: str) -> list:
    totals = aggregate_totals([row])
    rates = derive_rates(totals, project_rate_basis)
    return [
        row["date"],
        totals.emails_manual,
        totals.emails_outsource,
        totals.valid_emails_manual,
        totals.valid_emails_outsource,
        totals.replies,
        rates.reply_rate,
        totals.meetings,
        rates.meeting_rate,
        totals.deals,
        rates.deal_rate,
        totals.projects,
        rates.project_rate,
        row["ongoing_projects"],
        totals.slide_views,
        rates.slide_view_rate,
        totals.video_views,
        rates.video_view_rate,
        row["notes"],
    ]


def build_csv_export(entries: Iterable[Mapping[str, Any]], project_rate_basis: str = "deals") -> str:
    """Render entries as CSV: header, one line per day, then an aggregate line.

    The aggregate line leaves the ongoing-projects cell empty since that
    counter is a snapshot and does not sum.
    """
    rows = sorted((normalize_entry(entry) for entry in entries), key=lambda row: row["date"])
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow(_csv_line(row, project_rate_basis))

    totals = aggregate_totals(rows)
    rates = derive_rates(totals, project_rate_basis)
    writer.writerow(
        [
            TOTAL_ROW_LABEL,
            totals.emails_manual,
            totals.emails_outsource,
            totals.valid_emails_manual,
            totals.valid_emails_outsource,
            totals.replies,
            rates.reply_rate,
            totals.meetings,
            rates.meeting_rate,
            totals.deals,
            rates.deal_rate,
            totals.projects,
            rates.project_rate,
            "",
            totals.slide_views,
            rates.slide_view_rate,
            totals.video_views,
            rates.video_view_rate,
            "",
        ]
    )
    return output.getvalue()


def csv_filename(start: str, end: str) -> str:
    return f"kpi_export_{start}_{end}.csv"
