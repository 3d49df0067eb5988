"""Tests for the shop status workflow, public search helpers and admin routes."""

from datetime import datetime

import pytest

from shops import repository, search, workflow


class TestWorkflow:
    def test_approve_pending_and_rejected(self):
        assert workflow.approve("pending") == "approved"
        assert workflow.approve("rejected") == "approved"

    @pytest.mark.parametrize("current", ["approved", "blocked"])
    def test_cannot_approve(self, current):
        with pytest.raises(workflow.ShopTransitionError):
            workflow.approve(current)

    def test_reject_only_pending(self):
        assert workflow.reject("pending") == "rejected"
        with pytest.raises(workflow.ShopTransitionError):
            workflow.reject("approved")

    def test_toggle_block(self):
        assert workflow.toggle_block("approved") == "blocked"
        assert workflow.toggle_block("blocked") == "approved"


class TestSearchHelpers:
    def test_haversine(self):
        # Kochi to Thiruvananthapuram, about 175 km.
        distance = search.haversine_km(9.9312, 76.2673, 8.5241, 76.9366)
        assert 150 < distance < 200

    def test_open_now(self):
        hours = {"wednesday": "09:00-21:00", "sunday": "closed"}
        assert search.is_open_now(hours, datetime(2026, 5, 20, 10, 0)) is True
        assert search.is_open_now(hours, datetime(2026, 5, 20, 22, 0)) is False
        assert search.is_open_now(hours, datetime(2026, 5, 17, 10, 0)) is False
        assert search.is_open_now(hours, datetime(2026, 5, 18, 10, 0)) is None

    def test_overnight_hours(self):
        hours = {"friday": "18:00-02:00"}
        assert search.is_open_now(hours, datetime(2026, 5, 22, 23, 30)) is True
        assert search.is_open_now(hours, datetime(2026, 5, 22, 12, 0)) is False

    def test_location_terms(self):
        assert search.location_terms("Kochi, Ernakulam") == ["Kochi, Ernakulam", "Kochi", "Ernakulam"]
        assert search.location_terms("  ") == []

    def test_decorate_filters_by_distance(self):
        shops = [
            {"name": "Near", "latitude": 9.93, "longitude": 76.27, "status": "approved", "is_active": True, "discount_offered": 25},
            {"name": "Far", "latitude": 8.52, "longitude": 76.94, "status": "approved", "is_active": True},
            {"name": "Unknown", "latitude": None, "longitude": None},
        ]
        result = search.decorate(shops, now=datetime(2026, 5, 20, 10), latitude=9.9312, longitude=76.2673, max_distance_km=10)
        assert [s["name"] for s in result] == ["Near"]
        assert result[0]["badges"] == ["Great Deals", "Active"]

    def test_sort_by_distance_puts_unknown_last(self):
        shops = [{"name": "B", "distance_km": None}, {"name": "A", "distance_km": 4.0}, {"name": "C", "distance_km": 1.5}]
        assert [s["name"] for s in search.sort_results(shops, "distance")] == ["C", "A", "B"]


def _shop(**overrides):
    shop = {
        "id": 4,
        "name": "Spice Route",
        "owner_name": "Ravi",
        "email": "ravi@example.com",
        "status": "pending",
        "is_active": True,
    }
    shop.update(overrides)
    return shop


class TestShopRoutes:
    def test_approve_pending_shop(self, client, as_admin, monkeypatch):
        as_admin("admin")
        updates = []

        async def fake_get(shop_id):
            return _shop(id=shop_id)

        async def fake_set_status(shop_id, *, status, admin_id, reason=None, notes=None):
            updates.append((shop_id, status, admin_id))
            return _shop(id=shop_id, status=status)

        monkeypatch.setattr(repository, "get_shop", fake_get)
        monkeypatch.setattr(repository, "set_status", fake_set_status)

        resp = client.put("/api/admin/shops/4/approve", json={"notes": "Verified documents"})
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "approved"
        assert updates == [(4, "approved", 1)]

    def test_reject_approved_shop_fails(self, client, as_admin, monkeypatch):
        as_admin("admin")

        async def fake_get(shop_id):
            return _shop(id=shop_id, status="approved")

        monkeypatch.setattr(repository, "get_shop", fake_get)
        resp = client.put("/api/admin/shops/4/reject", json={"reason": "Incomplete address details"})
        assert resp.status_code == 400
        assert "Only pending shops can be rejected" in resp.json()["message"]

    def test_moderator_cannot_approve(self, client, as_admin):
        as_admin("moderator")
        resp = client.put("/api/admin/shops/4/approve", json={})
        assert resp.status_code == 403
