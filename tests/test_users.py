"""Tests for member signup and admin user management routes."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from auth import repository as auth_repository
from cards import repository as cards_repository
from otp import repository as otp_repository
from users import repository


class TestSignup:
    def test_invalid_phone(self, client):
        resp = client.post("/api/users/signup", json={"email_or_phone": "12345", "password": "Secret123"})
        assert resp.status_code == 422
        assert resp.json()["message"] == "Please provide a valid 10-digit Indian mobile number"

    def test_weak_password(self, client):
        resp = client.post("/api/users/signup", json={"email_or_phone": "asha@example.com", "password": "password"})
        assert resp.status_code == 422

    def test_existing_email(self, client, monkeypatch):
        async def fake_conflict(*, email, phone, exclude_user_id=None):
            return "email"

        monkeypatch.setattr(repository, "find_contact_conflict", fake_conflict)
        resp = client.post("/api/users/signup", json={"email_or_phone": "Asha@Example.com", "password": "Secret123"})
        assert resp.status_code == 409
        assert resp.json()["message"] == "An account with this email already exists"

    def test_admin_contact_is_taken(self, client, monkeypatch):
        async def fake_conflict(*, email, phone, exclude_user_id=None):
            return None

        async def fake_admin(*, email=None, phone=None):
            return True

        monkeypatch.setattr(repository, "find_contact_conflict", fake_conflict)
        monkeypatch.setattr(auth_repository, "admin_exists_with_contact", fake_admin)
        resp = client.post("/api/users/signup", json={"email_or_phone": "+91 98765 43210", "password": "Secret123"})
        assert resp.status_code == 409
        assert resp.json()["message"] == "An account with this phone already exists"


class TestBulkUpdate:
    @pytest.fixture
    def found(self, monkeypatch):
        async def fake_existing(user_ids):
            return [i for i in user_ids if i < 100]

        monkeypatch.setattr(repository, "existing_ids", fake_existing)

    def test_update_tier_requires_valid_tier(self, client, as_admin, found):
        as_admin("admin")
        resp = client.post(
            "/api/admin/users/bulk-update",
            json={"user_ids": [1, 2], "action": "update_tier", "data": {"tier": "Diamond"}},
        )
        assert resp.status_code == 422

    def test_update_tier_reports_missing(self, client, as_admin, found, monkeypatch):
        as_admin("admin")

        async def fake_set_tier(user_ids, tier):
            return len(user_ids)

        monkeypatch.setattr(repository, "bulk_set_tier", fake_set_tier)
        resp = client.post(
            "/api/admin/users/bulk-update",
            json={"user_ids": [2, 1, 500], "action": "update_tier", "data": {"tier": "Gold"}},
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {"action": "update_tier", "affected": 2, "missing_ids": [500]}

    def test_no_users_found(self, client, as_admin, found):
        as_admin("super_admin")
        resp = client.post("/api/admin/users/bulk-update", json={"user_ids": [300], "action": "activate"})
        assert resp.status_code == 404

    def test_admin_cannot_bulk_delete(self, client, as_admin):
        as_admin("admin")
        resp = client.post("/api/admin/users/bulk-update", json={"user_ids": [1], "action": "delete"})
        assert resp.status_code == 403


class TestMemberProfile:
    def test_profile_status(self, client, member, monkeypatch):
        async def fake_card(user_id):
            return None

        monkeypatch.setattr(cards_repository, "get_card_by_user", fake_card)
        resp = client.get("/api/users/profile-status")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["has_card"] is False
        assert data["card_status"] == "none"
        assert data["next_action"] == "profile_complete"

    def test_profile_update_ignores_nulls(self, client, member, monkeypatch):
        changes = []

        async def fake_update(user_id, fields):
            changes.append(fields)
            return {**member, **fields}

        monkeypatch.setattr(repository, "update_user", fake_update)
        resp = client.put("/api/users/profile", json={"full_name": "Asha M", "phone": None, "city": None})
        assert resp.status_code == 200
        assert changes == [{"full_name": "Asha M"}]
        assert resp.json()["data"]["phone"] == "9876543210"


class TestMemberPasswordReset:
    session_id = "7d4f6f2e-3a65-4c1b-9a43-2f3c1f0e9b11"

    def _session(self, **overrides):
        session = {
            "id": 21,
            "session_id": uuid.UUID(self.session_id),
            "user_id": 7,
            "otp_code": "5150",
            "otp_type": "sms",
            "contact_info": "9876543210",
            "purpose": "password_reset",
            "is_verified": False,
            "verified_at": None,
            "expires_at": datetime.now(timezone.utc) + timedelta(minutes=3),
            "verification_attempts": 0,
            "max_attempts": 3,
        }
        session.update(overrides)
        return session

    def test_resets_password_and_revokes_sessions(self, client, monkeypatch):
        updates, revoked = [], []

        async def fake_get(session_id):
            return self._session()

        async def fake_claim(pk, *, now):
            return self._session(verification_attempts=1)

        async def fake_mark(pk, *, now):
            return self._session(is_verified=True, verified_at=now)

        async def fake_update(user_id, fields):
            updates.append((user_id, set(fields)))
            return {"id": user_id}

        async def fake_revoke(*, account_type, account_id):
            revoked.append((account_type, account_id))

        monkeypatch.setattr(otp_repository, "get_by_session_id", fake_get)
        monkeypatch.setattr(otp_repository, "claim_attempt", fake_claim)
        monkeypatch.setattr(otp_repository, "mark_verified", fake_mark)
        monkeypatch.setattr(repository, "update_user", fake_update)
        monkeypatch.setattr(auth_repository, "revoke_all_refresh_tokens", fake_revoke)
        resp = client.post(
            "/api/users/reset-password",
            json={"session_id": self.session_id, "otp": "5150", "new_password": "NewSecret9"},
        )
        assert resp.status_code == 200
        assert updates == [(7, {"password_hash"})]
        assert revoked == [("member", 7)]

    def test_session_for_other_purpose(self, client, monkeypatch):
        async def fake_get(session_id):
            return self._session(purpose="email_verification")

        monkeypatch.setattr(otp_repository, "get_by_session_id", fake_get)
        resp = client.post(
            "/api/users/reset-password",
            json={"session_id": self.session_id, "otp": "5150", "new_password": "NewSecret9"},
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "OTP session not found or already verified"

    def test_weak_new_password(self, client):
        resp = client.post(
            "/api/users/reset-password",
            json={"session_id": self.session_id, "otp": "5150", "new_password": "alllowercase"},
        )
        assert resp.status_code == 422
