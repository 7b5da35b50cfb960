USERS_TABLE = "users"
DAILY_KPI_TABLE = "daily_kpi"
GOALS_TABLE = "kpi_goals"
REVIEWS_TABLE = "weekly_reviews"
USER_SETTINGS_TABLE = "user_settings"

# Daily entry counters, in the order they are exported.
ENTRY_COUNTER_FIELDS = [
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
]

ENTRY_COLUMNS = ["date", *ENTRY_COUNTER_FIELDS, "notes"]

# Totals field -> daily entry column it sums. ongoing_projects is a snapshot.
TOTALS_SOURCE_FIELDS = {
    "emails_manual": "emails_sent_manual",
    "emails_outsource": "emails_sent_outsource",
    "valid_emails_manual": "valid_emails_manual",
    "valid_emails_outsource": "valid_emails_outsource",
    "replies": "replies_received",
    "meetings": "meetings_scheduled",
    "deals": "deals_closed",
    "projects": "projects_created",
    "slide_views": "slide_views",
    "video_views": "video_views",
}

GOAL_COUNT_TARGETS = [
    "emails_manual_target",
    "emails_outsource_target",
    "valid_emails_manual_target",
    "valid_emails_outsource_target",
    "reply_target",
    "meetings_target",
    "deals_target",
    "projects_target",
    "ongoing_projects_target",
    "slide_views_target",
    "video_views_target",
]

GOAL_RATE_TARGETS = [
    "reply_rate_target",
    "meeting_rate_target",
    "deal_rate_target",
    "project_rate_target",
    "slide_view_rate_target",
    "video_view_rate_target",
]

GOAL_COLUMNS = ["week_start", *GOAL_COUNT_TARGETS, *GOAL_RATE_TARGETS]

# Totals field -> goal column holding its weekly target.
PROGRESS_TARGETS = {
    "emails_manual": "emails_manual_target",
    "emails_outsource": "emails_outsource_target",
    "valid_emails_manual": "valid_emails_manual_target",
    "valid_emails_outsource": "valid_emails_outsource_target",
    "replies": "reply_target",
    "meetings": "meetings_target",
    "deals": "deals_target",
    "projects": "projects_target",
    "slide_views": "slide_views_target",
    "video_views": "video_views_target",
}

REVIEW_TEXT_FIELDS = ["achievements", "challenges", "improvements", "notes"]

DEFAULT_USER_SETTINGS = {
    "discord_webhook": "",
    "email_notifications": True,
    "weekly_reminders": True,
    "daily_reminders": True,
    "reminder_time": "18:00",
}

PROJECT_RATE_BASES = ("deals", "meetings")

# Upper bound for stored counters and count targets (32-bit INTEGER columns).
MAX_COUNT = 2_147_483_647
