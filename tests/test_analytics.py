"""Tests for the admin analytics routes."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from analytics import repository, service


class TestAnalyticsRoutes:
    def test_custom_period_needs_dates(self, client, as_admin):
        as_admin("super_admin")
        resp = client.get("/api/admin/analytics/revenue", params={"period": "custom", "start_date": "2026-01-01"})
        assert resp.status_code == 422
        assert "start_date and end_date" in resp.json()["message"]

    def test_revenue_compares_previous_period(self, client, as_admin, monkeypatch):
        as_admin("admin")
        totals = iter(
            [
                {"transactions": 30, "gross": Decimal("1200"), "discount": Decimal("120"), "net": Decimal("1080")},
                {"transactions": 20, "gross": Decimal("1000"), "discount": Decimal("100"), "net": Decimal("900")},
            ]
        )

        async def fake_totals(start, end):
            return next(totals)

        async def fake_daily(start, end):
            return []

        monkeypatch.setattr(repository, "revenue_totals", fake_totals)
        monkeypatch.setattr(repository, "revenue_per_day", fake_daily)
        resp = client.get("/api/admin/analytics/revenue", params={"period": "last7days"})
        assert resp.status_code == 200
        change = resp.json()["data"]["change"]
        assert change == {"net": 20.0, "gross": 20.0, "transactions": 50.0}

    def test_moderator_cannot_view_revenue(self, client, as_admin):
        as_admin("moderator")
        resp = client.get("/api/admin/analytics/revenue")
        assert resp.status_code == 403

    def test_export_csv(self, client, as_admin, monkeypatch):
        as_admin("super_admin")

        async def fake_daily(start, end):
            return [{"date": "2026-05-01", "gross": Decimal("500.00"), "discount": Decimal("25.00"), "net": Decimal("475.00")}]

        monkeypatch.setattr(repository, "revenue_per_day", fake_daily)
        resp = client.get("/api/admin/analytics/export", params={"type": "revenue", "period": "month"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.text.splitlines() == ["date,gross,discount,net", "2026-05-01,500.00,25.00,475.00"]

    def test_discount_utilisation_rate(self, client, as_admin, monkeypatch):
        as_admin("admin")

        async def fake_summary(start, end):
            return {"total_transactions": 8, "discounted_transactions": 6, "total_discount": Decimal("300")}

        async def fake_empty(*args, **kwargs):
            return []

        monkeypatch.setattr(repository, "discount_summary", fake_summary)
        monkeypatch.setattr(repository, "discount_by_tier", fake_empty)
        monkeypatch.setattr(repository, "top_rules", fake_empty)
        resp = client.get("/api/admin/analytics/discounts")
        assert resp.status_code == 200
        assert resp.json()["data"]["summary"]["utilisation_rate"] == 75.0


class TestGeographic:
    def test_shops_by_district(self, client, as_admin, monkeypatch):
        as_admin("moderator")
        limits = []

        async def fake_districts(*, limit):
            limits.append(limit)
            return [{"district": "Ernakulam", "count": 12, "approved": 9}]

        monkeypatch.setattr(repository, "shop_district_distribution", fake_districts)
        resp = client.get("/api/admin/analytics/geographic", params={"type": "shops"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["level"] == "district"
        assert data["distribution"] == [{"district": "Ernakulam", "count": 12, "approved": 9}]
        assert limits == [20]

    def test_unknown_type(self, client, as_admin):
        as_admin("admin")
        resp = client.get("/api/admin/analytics/geographic", params={"type": "planets"})
        assert resp.status_code == 422


class TestRealtime:
    def test_only_requested_metrics(self, client, as_admin, monkeypatch):
        as_admin("moderator")
        windows = []

        async def fake_counts(*, day_start, hour_ago, active_since):
            windows.append(day_start)
            return {"users_today": 4, "users_online": 2, "transactions_today": 9}

        monkeypatch.setattr(repository, "realtime_counts", fake_counts)
        resp = client.get("/api/admin/analytics/realtime", params={"metrics": "users,weather"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["users"] == {"new_today": 4, "online": 2}
        assert "transactions" not in data
        assert windows[0].hour == 0

    @pytest.mark.asyncio
    async def test_online_window_is_fifteen_minutes(self, monkeypatch):
        now = datetime(2026, 5, 20, 15, 45, tzinfo=timezone.utc)
        seen = {}

        async def fake_counts(**kwargs):
            seen.update(kwargs)
            return {}

        monkeypatch.setattr(repository, "realtime_counts", fake_counts)
        data = await service.realtime(list(service.REALTIME_METRICS), now=now)
        assert seen["active_since"] == datetime(2026, 5, 20, 15, 30, tzinfo=timezone.utc)
        assert seen["hour_ago"] == datetime(2026, 5, 20, 14, 45, tzinfo=timezone.utc)
        assert data["revenue"] == {"today": 0, "last_hour": 0}


class TestCompare:
    def test_defaults_to_previous_window(self, client, as_admin, monkeypatch):
        as_admin("moderator")
        calls = []

        async def fake_total(metric, start, end):
            calls.append((metric, start, end))
            return Decimal("1500.00") if len(calls) == 1 else Decimal("1000.00")

        monkeypatch.setattr(repository, "metric_total", fake_total)
        resp = client.get("/api/admin/analytics/compare", params={"metric": "revenue", "period1": "last7days"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["period2"]["period"] == "previous"
        assert data["period1"]["value"] == 1500.0
        assert data["difference"] == {"absolute": 500.0, "percentage": 50.0}
        # The second window ends where the first one starts.
        assert calls[1][2] == calls[0][1]

    def test_explicit_custom_periods(self, client, as_admin, monkeypatch):
        as_admin("admin")

        async def fake_total(metric, start, end):
            return 0 if start.month == 3 else 8

        monkeypatch.setattr(repository, "metric_total", fake_total)
        resp = client.get(
            "/api/admin/analytics/compare",
            params={
                "metric": "users",
                "period1": "custom",
                "start_date1": "2026-04-01",
                "end_date1": "2026-04-30",
                "period2": "custom",
                "start_date2": "2026-03-01",
                "end_date2": "2026-03-31",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["difference"] == {"absolute": 8.0, "percentage": 100.0}

    def test_custom_second_period_needs_dates(self, client, as_admin):
        as_admin("admin")
        resp = client.get("/api/admin/analytics/compare", params={"period2": "custom"})
        assert resp.status_code == 422


class TestCustomReport:
    payload = {
        "report_name": "May discounts",
        "metrics": ["revenue", "discounts", "revenue"],
        "filters": {"tier": "Gold"},
        "group_by": "week",
        "start_date": "2026-05-01",
        "end_date": "2026-05-31",
    }

    def test_splits_one_transaction_series(self, client, as_admin, monkeypatch):
        as_admin("admin")
        calls = []

        async def fake_series(start, end, *, bucket, shop_id, tier):
            calls.append((bucket, shop_id, tier))
            return [
                {
                    "period": date(2026, 4, 27),
                    "transactions": 5,
                    "discounted_transactions": 3,
                    "gross": Decimal("1000.00"),
                    "discount": Decimal("90.00"),
                    "net": Decimal("910.00"),
                }
            ]

        monkeypatch.setattr(repository, "report_transactions", fake_series)
        resp = client.post("/api/admin/analytics/custom-report", json=self.payload)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert calls == [("week", None, "Gold")]
        assert list(data["data"]) == ["revenue", "discounts"]
        assert data["data"]["revenue"] == [{"period": "2026-04-27", "gross": 1000.0, "discount": 90.0, "net": 910.0}]
        assert data["data"]["discounts"][0]["discounted_transactions"] == 3
        assert data["range"]["end_formatted"] == "2026-05-31"

    def test_range_too_long(self, client, as_admin):
        as_admin("admin")
        resp = client.post(
            "/api/admin/analytics/custom-report",
            json={**self.payload, "start_date": "2024-01-01", "end_date": "2026-01-01"},
        )
        assert resp.status_code == 422
        assert "366 days" in resp.json()["message"]

    def test_needs_a_metric(self, client, as_admin):
        as_admin("admin")
        resp = client.post("/api/admin/analytics/custom-report", json={**self.payload, "metrics": []})
        assert resp.status_code == 422

    def test_moderator_denied(self, client, as_admin):
        as_admin("moderator")
        resp = client.post("/api/admin/analytics/custom-report", json=self.payload)
        assert resp.status_code == 403


class TestPredictions:
    @pytest.mark.asyncio
    async def test_projects_trend_from_filled_history(self, monkeypatch):
        now = datetime(2026, 5, 20, 9, 0, tzinfo=timezone.utc)
        windows = []

        async def fake_daily(metric, start, end):
            windows.append((start, end))
            # Only the last two days had activity.
            return [{"date": date(2026, 5, 19), "value": 10}, {"date": date(2026, 5, 20), "value": 20}]

        monkeypatch.setattr(repository, "metric_per_day", fake_daily)
        data = await service.predictions("transactions", horizon=3, now=now)
        assert windows == [(datetime(2026, 2, 20, tzinfo=timezone.utc), datetime(2026, 5, 21, tzinfo=timezone.utc))]
        assert len(data["historical"]) == 90
        assert data["historical"][0] == {"date": date(2026, 2, 20), "value": 0.0}
        assert [p["date"] for p in data["predictions"]] == [date(2026, 5, 21), date(2026, 5, 22), date(2026, 5, 23)]
        assert data["trend"]["direction"] == "up"

    def test_horizon_bounds(self, client, as_admin):
        as_admin("super_admin")
        resp = client.get("/api/admin/analytics/predictions", params={"horizon": 400})
        assert resp.status_code == 422
