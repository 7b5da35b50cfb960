"""
HTTP-level tests for the KPI API, run against the in-memory repository
with "today" pinned to 2024-01-03 (a Wednesday).
"""
import jwt
from fastapi.testclient import TestClient

from sales_kpi.auth import issue_token
from sales_kpi.deps import get_today
from sales_kpi.errors import StorageError
from sales_kpi.main import create_app
from sales_kpi.memory_repository import InMemoryKpiRepository
from sales_kpi.settings import Settings

from conftest import PASSWORD, TODAY

WEEK = "2024-01-01"


def _post_entry(client, headers, day, **counters):
    response = client.post("/api/daily-kpi", json={"date": day, **counters}, headers=headers)
    assert response.status_code == 200, response.text
    return response


class TestAuth:
    def test_missing_token(self, client):
        assert client.get(f"/api/daily-kpi/{WEEK}").status_code == 401
        assert client.get("/api/settings").status_code == 401

    def test_bad_tokens(self, client):
        forged = jwt.encode({"sub": "someone"}, "other-secret", algorithm="HS256")
        for value in ("Bearer garbage", f"Bearer {forged}", "Token abc"):
            response = client.get("/api/kpi-goals/current", headers={"Authorization": value})
            assert response.status_code == 401
            assert response.json() == {"detail": "Not authenticated"}

    def test_token_for_unknown_user(self, client, settings):
        token = issue_token(settings, "no-such-user", "ghost@example.com")
        response = client.get("/api/settings", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_register_then_login(self, client, register_user):
        headers = register_user("Closer@Example.com", "Closer")
        _post_entry(client, headers, WEEK, replies_received=1)

        response = client.post("/api/auth/login", json={"email": "closer@example.com", "password": PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == "closer@example.com"
        assert body["user"]["name"] == "Closer"
        assert body["data_count"] == 1
        assert body["token"]

    def test_wrong_password(self, client, register_user):
        register_user()
        response = client.post("/api/auth/login", json={"email": "rep@example.com", "password": "nope-nope"})
        assert response.status_code == 401

    def test_duplicate_email(self, client, register_user):
        register_user()
        response = client.post(
            "/api/auth/register", json={"email": "REP@example.com", "password": PASSWORD, "name": "Again"}
        )
        assert response.status_code == 400

    def test_register_validation(self, client):
        response = client.post("/api/auth/register", json={"email": "not-an-email", "password": PASSWORD, "name": "X"})
        assert response.status_code == 422


class TestDailyKpi:
    def test_upsert_and_fetch(self, client, auth_headers):
        _post_entry(client, auth_headers, WEEK, replies_received=4, notes="first")
        response = _post_entry(client, auth_headers, WEEK, replies_received=6, notes="second")
        assert response.json() == {"message": "Daily KPI saved successfully"}

        entry = client.get(f"/api/daily-kpi/{WEEK}", headers=auth_headers).json()
        assert entry["replies_received"] == 6
        assert entry["notes"] == "second"
        assert entry["emails_sent_manual"] == 0

    def test_missing_day_is_empty(self, client, auth_headers):
        response = client.get("/api/daily-kpi/2024-02-01", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {}

    def test_blank_counters_default_to_zero(self, client, auth_headers):
        _post_entry(client, auth_headers, WEEK, deals_closed="", slide_views=None)
        entry = client.get(f"/api/daily-kpi/{WEEK}", headers=auth_headers).json()
        assert entry["deals_closed"] == 0
        assert entry["slide_views"] == 0

    def test_negative_counter_rejected(self, client, auth_headers):
        response = client.post("/api/daily-kpi", json={"date": WEEK, "replies_received": -1}, headers=auth_headers)
        assert response.status_code == 422

    def test_oversized_counter_rejected(self, client, auth_headers):
        response = client.post("/api/daily-kpi", json={"date": WEEK, "replies_received": 2**31}, headers=auth_headers)
        assert response.status_code == 422
        _post_entry(client, auth_headers, WEEK, replies_received=2**31 - 1)

    def test_malformed_dates_rejected(self, client, auth_headers):
        assert client.post("/api/daily-kpi", json={"date": "01/02/2024"}, headers=auth_headers).status_code == 422
        assert client.get("/api/daily-kpi/2024-13-45", headers=auth_headers).status_code == 422

    def test_users_are_isolated(self, client, register_user):
        first = register_user("a@example.com", "A")
        second = register_user("b@example.com", "B")
        _post_entry(client, first, WEEK, deals_closed=2)

        assert client.get(f"/api/daily-kpi/{WEEK}", headers=second).json() == {}
        summary = client.get(f"/api/weekly-summary/{WEEK}", headers=second).json()
        assert summary["daily_data"] == []
        assert summary["totals"]["deals"] == 0


class TestWeeklySummary:
    def test_totals_and_rates(self, client, auth_headers):
        _post_entry(client, auth_headers, "2024-01-01", valid_emails_manual=400, replies_received=4, ongoing_projects=2)
        _post_entry(client, auth_headers, "2024-01-03", valid_emails_outsource=600, replies_received=6, ongoing_projects=5)
        _post_entry(client, auth_headers, "2024-01-08", replies_received=100)

        summary = client.get(f"/api/weekly-summary/{WEEK}", headers=auth_headers).json()
        assert summary["week_start"] == "2024-01-01"
        assert summary["week_end"] == "2024-01-07"
        assert [row["date"] for row in summary["daily_data"]] == ["2024-01-01", "2024-01-03"]
        assert summary["totals"]["replies"] == 10
        assert summary["rates"]["reply_rate"] == "1.00"
        assert summary["rates"]["meeting_rate"] == "0.00"
        assert summary["ongoing_projects"] == 5

    def test_empty_week(self, client, auth_headers):
        summary = client.get(f"/api/weekly-summary/{WEEK}", headers=auth_headers).json()
        assert summary["daily_data"] == []
        assert set(summary["rates"].values()) == {"0"}


class TestGoals:
    def test_current_and_by_week(self, client, auth_headers):
        for week, target in (("2024-01-08", 30), ("2024-01-01", 20)):
            response = client.post(
                "/api/kpi-goals", json={"week_start": week, "reply_target": target}, headers=auth_headers
            )
            assert response.status_code == 200

        current = client.get("/api/kpi-goals/current", headers=auth_headers).json()
        assert current["week_start"] == "2024-01-08"
        assert current["reply_target"] == 30

        first = client.get(f"/api/kpi-goals/{WEEK}", headers=auth_headers).json()
        assert first["reply_target"] == 20
        assert first["meetings_target"] == 0

    def test_no_goals(self, client, auth_headers):
        assert client.get("/api/kpi-goals/current", headers=auth_headers).json() == {}

    def test_negative_target_rejected(self, client, auth_headers):
        response = client.post("/api/kpi-goals", json={"week_start": WEEK, "deals_target": -2}, headers=auth_headers)
        assert response.status_code == 422

    def test_oversized_target_rejected(self, client, auth_headers):
        response = client.post("/api/kpi-goals", json={"week_start": WEEK, "reply_target": 2**31}, headers=auth_headers)
        assert response.status_code == 422

    def test_progress(self, client, auth_headers):
        client.post(
            "/api/kpi-goals",
            json={"week_start": WEEK, "reply_target": 20, "deals_target": 2, "meetings_target": 0},
            headers=auth_headers,
        )
        _post_entry(client, auth_headers, "2024-01-02", replies_received=5, deals_closed=2, meetings_scheduled=3)

        body = client.get(f"/api/goals/progress/{WEEK}", headers=auth_headers).json()
        assert body["week_start"] == WEEK
        assert body["actuals"]["replies"] == 5
        assert body["progress"]["replies"] == "25.0"
        assert body["progress"]["deals"] == "100.0"
        assert body["progress"]["meetings"] == "0"
        assert body["days_remaining"] == 5
        assert body["daysRemaining"] == 5

    def test_progress_without_goals(self, client, auth_headers):
        body = client.get(f"/api/goals/progress/{WEEK}", headers=auth_headers).json()
        assert body["goals"] == {}
        assert set(body["progress"].values()) == {"0"}


class TestWeeklyReview:
    def test_upsert_and_fetch(self, client, auth_headers):
        for text in ("first pass", "final"):
            response = client.post(
                "/api/weekly-review", json={"week_start": WEEK, "achievements": text}, headers=auth_headers
            )
            assert response.status_code == 200

        review = client.get(f"/api/weekly-review/{WEEK}", headers=auth_headers).json()
        assert review["achievements"] == "final"
        assert review["week_end"] == "2024-01-07"

    def test_end_before_start(self, client, auth_headers):
        response = client.post(
            "/api/weekly-review", json={"week_start": WEEK, "week_end": "2023-12-31"}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_missing_review(self, client, auth_headers):
        assert client.get(f"/api/weekly-review/{WEEK}", headers=auth_headers).json() == {}


class TestSettings:
    def test_defaults(self, client, auth_headers):
        body = client.get("/api/settings", headers=auth_headers).json()
        assert body["reminder_time"] == "18:00"
        assert body["daily_reminders"] is True
        assert body["discord_webhook"] == ""

    def test_save(self, client, auth_headers):
        payload = {"discord_webhook": "https://hooks.example/x", "weekly_reminders": False, "reminder_time": "08:15"}
        response = client.post("/api/settings", json=payload, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

        body = client.get("/api/settings", headers=auth_headers).json()
        assert body["discord_webhook"] == "https://hooks.example/x"
        assert body["weekly_reminders"] is False
        assert body["reminder_time"] == "08:15"

    def test_invalid_reminder_time(self, client, auth_headers):
        response = client.post("/api/settings", json={"reminder_time": "25:00"}, headers=auth_headers)
        assert response.status_code == 422

    def test_camel_case_keys_are_saved(self, client, auth_headers):
        payload = {"discordWebhook": "https://hooks.example/y", "dailyReminders": False, "reminderTime": "07:45"}
        response = client.post("/api/settings", json=payload, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["settings"]["discord_webhook"] == "https://hooks.example/y"

        body = client.get("/api/settings", headers=auth_headers).json()
        assert body["discord_webhook"] == "https://hooks.example/y"
        assert body["daily_reminders"] is False
        assert body["reminder_time"] == "07:45"

    def test_unknown_keys_do_not_reset_settings(self, client, auth_headers):
        client.post("/api/settings", json={"discord_webhook": "https://hooks.example/keep"}, headers=auth_headers)
        response = client.post("/api/settings", json={"webhook": "https://hooks.example/other"}, headers=auth_headers)
        assert response.status_code == 422
        assert client.get("/api/settings", headers=auth_headers).json()["discord_webhook"] == "https://hooks.example/keep"


class TestExport:
    def _seed(self, client, headers):
        _post_entry(client, headers, "2024-01-02", valid_emails_manual=50, replies_received=5, notes="hi, there")
        _post_entry(client, headers, "2024-01-01", emails_sent_manual=10, meetings_scheduled=1)

    def test_json_matches_weekly_summary(self, client, auth_headers):
        self._seed(client, auth_headers)
        exported = client.get(
            "/api/export/json", params={"start": "2024-01-01", "end": "2024-01-07"}, headers=auth_headers
        ).json()
        summary = client.get(f"/api/weekly-summary/{WEEK}", headers=auth_headers).json()
        assert exported["data"] == summary["daily_data"]
        assert exported["period"] == {"start": "2024-01-01", "end": "2024-01-07"}
        assert exported["totals"]["total_replies"] == 5
        assert exported["totals"]["avg_reply_rate"] == "10.00"

    def test_csv(self, client, auth_headers):
        self._seed(client, auth_headers)
        response = client.get(
            "/api/export/csv", params={"start": "2024-01-01", "end": "2024-01-07"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "kpi_export_2024-01-01_2024-01-07.csv" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0].startswith("Date,")
        assert lines[1].startswith("2024-01-01,")
        assert lines[2].endswith('"hi, there"')
        assert lines[-1].startswith("Total,")

    def test_inverted_range(self, client, auth_headers):
        params = {"start": "2024-01-07", "end": "2024-01-01"}
        assert client.get("/api/export/json", params=params, headers=auth_headers).status_code == 400
        assert client.get("/api/export/csv", params=params, headers=auth_headers).status_code == 400

    def test_missing_range(self, client, auth_headers):
        assert client.get("/api/export/json", headers=auth_headers).status_code == 422


class TestDashboard:
    def test_stats(self, client, auth_headers):
        _post_entry(client, auth_headers, "2024-01-02", emails_sent_manual=5, meetings_scheduled=1)
        _post_entry(client, auth_headers, "2023-12-27", emails_sent_outsource=7, deals_closed=1)

        stats = client.get("/api/dashboard/stats", headers=auth_headers).json()
        assert stats["last_30_days"]["total_emails"] == 12
        assert stats["current_week"] == {"emails": 5, "meetings": 1, "deals": 0}
        assert stats["last_week"] == {"emails": 7, "meetings": 0, "deals": 1}
        assert stats["period"]["end"] == TODAY.isoformat()

    def test_trends(self, client, auth_headers):
        _post_entry(client, auth_headers, "2024-01-02", emails_sent_manual=5)
        body = client.get("/api/performance/trends", params={"weeks": 4}, headers=auth_headers).json()
        assert body["weeks"] == 4
        assert body["trends"][0]["week"] == "2024-W01"
        assert body["trends"][0]["emails"] == 5

    def test_trends_bounds(self, client, auth_headers):
        response = client.get("/api/performance/trends", params={"weeks": 0}, headers=auth_headers)
        assert response.status_code == 422


class TestInfrastructure:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["timestamp"]

    def test_storage_failure_is_opaque(self, settings):
        class FailingRepository(InMemoryKpiRepository):
            async def list_daily_entries(self, user_id, start_iso, end_iso):
                raise StorageError("could not connect to db.internal:5432")

        app = create_app(settings, FailingRepository())
        app.dependency_overrides[get_today] = lambda: TODAY
        with TestClient(app) as client:
            token = client.post(
                "/api/auth/register", json={"email": "rep@example.com", "password": PASSWORD, "name": "Rep"}
            ).json()["token"]
            response = client.get(f"/api/weekly-summary/{WEEK}", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal error"}
        assert "db.internal" not in response.text

    def test_sql_backed_app_rejects_oversized_counters(self, tmp_path):
        settings = Settings(
            _env_file=None,
            JWT_SECRET="test-secret",
            DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        )
        with TestClient(create_app(settings)) as client:
            token = client.post(
                "/api/auth/register", json={"email": "rep@example.com", "password": PASSWORD, "name": "Rep"}
            ).json()["token"]
            headers = {"Authorization": f"Bearer {token}"}
            oversized = client.post("/api/daily-kpi", json={"date": WEEK, "replies_received": 10**20}, headers=headers)
            saved = client.post("/api/daily-kpi", json={"date": WEEK, "replies_received": 2**31 - 1}, headers=headers)
            entry = client.get(f"/api/daily-kpi/{WEEK}", headers=headers).json()

        assert oversized.status_code == 422
        assert saved.status_code == 200
        assert entry["replies_received"] == 2**31 - 1
