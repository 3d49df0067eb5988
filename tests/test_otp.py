"""Tests for the member OTP endpoints."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from core import notify
from otp import repository, service
from users import repository as users_repository

SESSION_ID = uuid.UUID("7d4f6f2e-3a65-4c1b-9a43-2f3c1f0e9b11")


def _session(**overrides):
    now = datetime.now(timezone.utc)
    session = {
        "id": 12,
        "session_id": SESSION_ID,
        "user_id": 7,
        "otp_code": "4821",
        "otp_type": "email",
        "contact_info": "asha@example.com",
        "purpose": "email_verification",
        "is_verified": False,
        "verified_at": None,
        "expires_at": now + timedelta(minutes=4),
        "verification_attempts": 0,
        "max_attempts": 3,
        "resend_count": 0,
        "max_resends": 3,
        "last_resent_at": None,
    }
    session.update(overrides)
    return session


@pytest.fixture
def user_lookup(monkeypatch):
    user = {"id": 7, "full_name": "Asha Menon", "email": "asha@example.com", "phone": "9876543210", "is_active": True}

    async def fake_by_email(email):
        return user if email == "asha@example.com" else None

    monkeypatch.setattr(users_repository, "get_user_by_email", fake_by_email)
    return user


class TestSendOtp:
    def test_cooldown(self, client, monkeypatch, user_lookup):
        async def fake_count(*, user_id, contact_info, since):
            return 1

        monkeypatch.setattr(repository, "count_requests_since", fake_count)
        resp = client.post("/api/users/otp/send", json={"purpose": "email_verification", "email": "asha@example.com"})
        assert resp.status_code == 429
        assert resp.json()["message"] == "Please wait before requesting another OTP"

    def test_daily_limit(self, client, monkeypatch, user_lookup):
        counts = iter([0, 10])

        async def fake_count(*, user_id, contact_info, since):
            return next(counts)

        monkeypatch.setattr(repository, "count_requests_since", fake_count)
        resp = client.post("/api/users/otp/send", json={"purpose": "email_verification", "email": "asha@example.com"})
        assert resp.status_code == 429
        assert "Daily OTP limit" in resp.json()["message"]

    def test_sends_code(self, client, monkeypatch, user_lookup):
        sent = {}

        async def fake_count(*, user_id, contact_info, since):
            return 0

        async def fake_create(**fields):
            return {**fields, "id": 12, "resend_count": 0, "max_resends": 3}

        async def fake_send_email(*, to, subject, html, text=None):
            sent.update(to=to, subject=subject)
            return True

        monkeypatch.setattr(repository, "count_requests_since", fake_count)
        monkeypatch.setattr(repository, "create_session", fake_create)
        monkeypatch.setattr(notify, "send_email", fake_send_email)
        resp = client.post("/api/users/otp/send", json={"purpose": "email_verification", "email": "asha@example.com"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["contact"] == "as**@example.com"
        assert data["resends_left"] == 3
        assert "otp_code" not in data
        assert sent["to"] == "asha@example.com"

    def test_unknown_contact(self, client, user_lookup):
        resp = client.post("/api/users/otp/send", json={"purpose": "email_verification", "email": "ghost@example.com"})
        assert resp.status_code == 404

    def test_contact_required(self, client):
        resp = client.post("/api/users/otp/send", json={"purpose": "email_verification"})
        assert resp.status_code == 400


class TestSendFailure:
    def test_undelivered_session_is_removed(self, client, monkeypatch, user_lookup):
        deleted = []

        async def fake_count(*, user_id, contact_info, since):
            return 0

        async def fake_create(**fields):
            return {**fields, "id": 12, "resend_count": 0, "max_resends": 3}

        async def fake_delete(pk):
            deleted.append(pk)
            return True

        async def failing_send(*, to, subject, html, text=None):
            raise notify.NotificationError("smtp down")

        monkeypatch.setattr(repository, "count_requests_since", fake_count)
        monkeypatch.setattr(repository, "create_session", fake_create)
        monkeypatch.setattr(repository, "delete_session", fake_delete)
        monkeypatch.setattr(notify, "send_email", failing_send)
        resp = client.post("/api/users/otp/send", json={"purpose": "email_verification", "email": "asha@example.com"})
        assert resp.status_code == 502
        assert deleted == [12]


class TestVerifyOtp:
    def test_wrong_code_counts_attempt(self, client, monkeypatch):
        claims = []

        async def fake_get(session_id):
            return _session()

        async def fake_claim(pk, *, now):
            claims.append(pk)
            return _session(verification_attempts=1)

        monkeypatch.setattr(repository, "get_by_session_id", fake_get)
        monkeypatch.setattr(repository, "claim_attempt", fake_claim)
        resp = client.post("/api/users/otp/verify", json={"session_id": str(SESSION_ID), "otp": "1111"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid OTP code"
        assert claims == [12]

    def test_expired(self, client, monkeypatch):
        async def fake_get(session_id):
            return _session(expires_at=datetime.now(timezone.utc) - timedelta(seconds=5))

        monkeypatch.setattr(repository, "get_by_session_id", fake_get)
        resp = client.post("/api/users/otp/verify", json={"session_id": str(SESSION_ID), "otp": "4821"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "OTP has expired"

    def test_claim_lost_to_another_request(self, client, monkeypatch):
        async def fake_get(session_id):
            return _session(verification_attempts=2)

        async def fake_claim(pk, *, now):
            return None

        monkeypatch.setattr(repository, "get_by_session_id", fake_get)
        monkeypatch.setattr(repository, "claim_attempt", fake_claim)
        resp = client.post("/api/users/otp/verify", json={"session_id": str(SESSION_ID), "otp": "4821"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Maximum verification attempts exceeded"

    def test_correct_code_marks_email_verified(self, client, monkeypatch):
        updates = []

        async def fake_get(session_id):
            return _session()

        async def fake_claim(pk, *, now):
            return _session(verification_attempts=1)

        async def fake_mark(pk, *, now):
            return _session(is_verified=True, verified_at=now)

        async def fake_update(user_id, fields):
            updates.append((user_id, fields))
            return {"id": user_id, **fields}

        monkeypatch.setattr(repository, "get_by_session_id", fake_get)
        monkeypatch.setattr(repository, "claim_attempt", fake_claim)
        monkeypatch.setattr(repository, "mark_verified", fake_mark)
        monkeypatch.setattr(users_repository, "update_user", fake_update)
        resp = client.post("/api/users/otp/verify", json={"session_id": str(SESSION_ID), "otp": "4821"})
        assert resp.status_code == 200
        assert resp.json()["data"]["session_id"] == str(SESSION_ID)
        assert updates == [(7, {"is_email_verified": True})]

    def test_malformed_code(self, client):
        resp = client.post("/api/users/otp/verify", json={"session_id": str(SESSION_ID), "otp": "12ab"})
        assert resp.status_code == 422


class _SessionStore:
    """In-memory stand-in for the otp_sessions row with the same conditional updates."""

    def __init__(self, session):
        self.row = session

    async def get_by_session_id(self, session_id):
        await asyncio.sleep(0)
        return dict(self.row)

    async def claim_attempt(self, pk, *, now):
        await asyncio.sleep(0)
        row = self.row
        if row["is_verified"] or row["expires_at"] <= now or row["verification_attempts"] >= row["max_attempts"]:
            return None
        row["verification_attempts"] += 1
        return dict(row)

    async def mark_verified(self, pk, *, now):
        await asyncio.sleep(0)
        row = self.row
        if row["is_verified"] or row["expires_at"] <= now or row["verification_attempts"] > row["max_attempts"]:
            return None
        row.update(is_verified=True, verified_at=now)
        return dict(row)


@pytest.mark.asyncio
class TestConcurrentGuesses:
    async def test_parallel_guesses_cannot_exceed_attempts(self, monkeypatch):
        store = _SessionStore(_session(otp_code="4321", purpose="password_reset"))
        monkeypatch.setattr(repository, "get_by_session_id", store.get_by_session_id)
        monkeypatch.setattr(repository, "claim_attempt", store.claim_attempt)
        monkeypatch.setattr(repository, "mark_verified", store.mark_verified)

        guesses = [f"{n:04d}" for n in range(1000, 1010)] + ["4321"]
        results = await asyncio.gather(
            *(service.verify(SESSION_ID, code, apply_action=False) for code in guesses),
            return_exceptions=True,
        )

        assert store.row["verification_attempts"] == 3
        assert store.row["is_verified"] is False
        messages = [r.detail for r in results if isinstance(r, HTTPException)]
        assert len(messages) == len(guesses)
        assert messages.count("Invalid OTP code") == 3
        assert messages[-1] == "Maximum verification attempts exceeded"


class TestResendOtp:
    @pytest.fixture
    def deliveries(self, monkeypatch):
        sent = []

        async def fake_send_email(*, to, subject, html, text=None):
            sent.append(to)
            return True

        async def fake_user(user_id):
            return {"id": user_id, "full_name": "Asha Menon"}

        monkeypatch.setattr(notify, "send_email", fake_send_email)
        monkeypatch.setattr(users_repository, "get_user_by_id", fake_user)
        return sent

    def _use(self, monkeypatch, session):
        async def fake_get(session_id):
            return session

        async def fake_apply(pk, changes):
            return {**session, **changes}

        monkeypatch.setattr(repository, "get_by_session_id", fake_get)
        monkeypatch.setattr(repository, "apply_resend", fake_apply)

    def test_resend_extends_expiry(self, client, monkeypatch, deliveries):
        session = _session(expires_at=datetime.now(timezone.utc) + timedelta(seconds=20), resend_count=1)
        self._use(monkeypatch, session)
        resp = client.post("/api/users/otp/resend", json={"session_id": str(SESSION_ID)})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["resends_left"] == 1
        assert data["time_remaining"] == {"expired": False, "minutes": 5, "seconds": 0}
        assert deliveries == ["asha@example.com"]

    def test_resend_too_soon(self, client, monkeypatch, deliveries):
        self._use(monkeypatch, _session(last_resent_at=datetime.now(timezone.utc) - timedelta(seconds=10), resend_count=1))
        resp = client.post("/api/users/otp/resend", json={"session_id": str(SESSION_ID)})
        assert resp.status_code == 400
        assert deliveries == []

    def test_resend_limit_reached(self, client, monkeypatch, deliveries):
        self._use(monkeypatch, _session(resend_count=3))
        resp = client.post("/api/users/otp/resend", json={"session_id": str(SESSION_ID)})
        assert resp.status_code == 400
        assert "maximum resend limit" in resp.json()["message"]

    def test_verified_session(self, client, monkeypatch, deliveries):
        self._use(monkeypatch, _session(is_verified=True))
        resp = client.post("/api/users/otp/resend", json={"session_id": str(SESSION_ID)})
        assert resp.status_code == 400
        assert resp.json()["message"] == "OTP already verified"
