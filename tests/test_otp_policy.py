"""Tests for one-time password rules."""

from datetime import datetime, timedelta, timezone

import pytest

from otp import policy

NOW = datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)


def _session(**overrides):
    session = {
        "id": 1,
        "otp_code": "4821",
        "is_verified": False,
        "expires_at": NOW + timedelta(minutes=3),
        "verification_attempts": 0,
        "max_attempts": 3,
        "resend_count": 0,
        "max_resends": 3,
        "last_resent_at": None,
    }
    session.update(overrides)
    return session


class TestCode:
    def test_four_digits(self):
        for _ in range(50):
            code = policy.generate_code()
            assert len(code) == 4
            assert 1000 <= int(code) <= 9999

    def test_expiry_is_five_minutes(self):
        assert policy.expiry_from(NOW) - NOW == timedelta(minutes=5)


class TestVerification:
    def test_live_session(self):
        policy.check_session(_session(), NOW)
        policy.check_code(_session(), " 4821 ")

    def test_missing_session(self):
        with pytest.raises(policy.OTPError) as exc:
            policy.check_session(None, NOW)
        assert exc.value.message == policy.MSG_NOT_FOUND

    def test_already_verified(self):
        with pytest.raises(policy.OTPError) as exc:
            policy.check_session(_session(is_verified=True), NOW)
        assert exc.value.message == policy.MSG_NOT_FOUND

    def test_expired(self):
        with pytest.raises(policy.OTPError) as exc:
            policy.check_session(_session(expires_at=NOW - timedelta(seconds=1)), NOW)
        assert exc.value.message == policy.MSG_EXPIRED

    def test_attempts_exhausted(self):
        with pytest.raises(policy.OTPError) as exc:
            policy.check_session(_session(verification_attempts=3), NOW)
        assert exc.value.message == policy.MSG_TOO_MANY_ATTEMPTS

    def test_wrong_code(self):
        with pytest.raises(policy.OTPError) as exc:
            policy.check_code(_session(), "1111")
        assert exc.value.message == policy.MSG_INVALID

    def test_claim_rejection(self):
        assert policy.claim_rejection(_session(), NOW) == policy.MSG_TOO_MANY_ATTEMPTS
        expired = _session(expires_at=NOW - timedelta(seconds=1))
        assert policy.claim_rejection(expired, NOW) == policy.MSG_EXPIRED


class TestResend:
    def test_first_resend_allowed(self):
        assert policy.can_resend(_session(), NOW)

    def test_resend_interval(self):
        recent = _session(last_resent_at=NOW - timedelta(seconds=10))
        older = _session(last_resent_at=NOW - timedelta(seconds=31))
        assert not policy.can_resend(recent, NOW)
        assert policy.can_resend(older, NOW)

    def test_resend_cap(self):
        assert not policy.can_resend(_session(resend_count=3), NOW)

    def test_apply_resend(self):
        changes = policy.apply_resend(_session(resend_count=1), "9090", NOW)
        assert changes["otp_code"] == "9090"
        assert changes["resend_count"] == 2
        assert changes["last_resent_at"] == NOW
        assert changes["expires_at"] == NOW + policy.CODE_VALIDITY


class TestTimeRemaining:
    def test_remaining(self):
        assert policy.time_remaining(_session(), NOW) == {"expired": False, "minutes": 3, "seconds": 0}

    def test_expired(self):
        assert policy.time_remaining(_session(expires_at=NOW), NOW)["expired"] is True


def test_email_content_mentions_code():
    subject, html = policy.email_content("4821", "password_reset", "Asha")
    assert "4821" in subject
    assert "Reset your password" in html
    assert "Asha" in html
