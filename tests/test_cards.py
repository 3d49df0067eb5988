"""Tests for card numbers, QR payloads and validity arithmetic."""

import json
from datetime import datetime, timezone

from cards import numbers

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


class TestCardNumber:
    def test_sixteen_digits(self):
        number = numbers.generate_card_number()
        assert len(number) == 16
        assert number.isdigit()

    def test_transaction_ref_format(self):
        ref = numbers.generate_transaction_ref()
        assert ref.startswith("TXN")
        assert len(ref) == 19
        assert ref[3:].isdigit()

    def test_qr_payload(self):
        payload = json.loads(numbers.qr_payload(card_number="1234567812345678", user_id=5, issued_at=NOW))
        assert payload["type"] == "discount_card"
        assert payload["card_number"] == "1234567812345678"
        assert payload["user_id"] == 5
        assert payload["version"] == numbers.QR_VERSION


class TestValidity:
    def test_add_months_clamps_day(self):
        jan_31 = datetime(2026, 1, 31, tzinfo=timezone.utc)
        assert numbers.add_months(jan_31, 1) == datetime(2026, 2, 28, tzinfo=timezone.utc)

    def test_add_months_crosses_year(self):
        assert numbers.add_months(NOW, 12) == datetime(2027, 3, 10, 9, 30, tzinfo=timezone.utc)

    def test_renew_unexpired_extends_from_expiry(self):
        expiry = datetime(2026, 5, 1, tzinfo=timezone.utc)
        assert numbers.renewed_expiry(expiry, months=6, now=NOW) == datetime(2026, 11, 1, tzinfo=timezone.utc)

    def test_renew_lapsed_extends_from_now(self):
        expiry = datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert numbers.renewed_expiry(expiry, months=1, now=NOW) == datetime(2026, 4, 10, 9, 30, tzinfo=timezone.utc)


class TestCardStatus:
    def test_no_card(self):
        assert numbers.card_status(None, now=NOW)["status"] == numbers.STATUS_NONE

    def test_active(self):
        card = {"is_active": True, "expires_at": datetime(2026, 3, 20, 9, 30, tzinfo=timezone.utc)}
        state = numbers.card_status(card, now=NOW)
        assert state["status"] == numbers.STATUS_ACTIVE
        assert state["days_remaining"] == 10

    def test_expired_wins_over_inactive(self):
        card = {"is_active": False, "expires_at": datetime(2026, 1, 1, tzinfo=timezone.utc)}
        state = numbers.card_status(card, now=NOW)
        assert state["status"] == numbers.STATUS_EXPIRED
        assert state["is_expired"] is True

    def test_inactive(self):
        card = {"is_active": False, "expires_at": datetime(2027, 1, 1, tzinfo=timezone.utc)}
        assert numbers.card_status(card, now=NOW)["status"] == numbers.STATUS_INACTIVE
