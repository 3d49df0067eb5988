"""Tests for text helpers and the response envelope."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core import responses, text


class TestText:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("+91 98765 43210", "9876543210"),
            ("919876543210", "9876543210"),
            ("98765-43210", "9876543210"),
        ],
    )
    def test_normalize_phone(self, raw, expected):
        assert text.normalize_phone(raw) == expected

    def test_indian_phone(self):
        assert text.is_indian_phone("9876543210")
        assert not text.is_indian_phone("5876543210")
        assert not text.is_indian_phone("98765")

    def test_strong_password(self):
        assert text.is_strong_password("Secret123")
        assert not text.is_strong_password("secret123")
        assert not text.is_strong_password("SECRET123")
        assert not text.is_strong_password("Secret")

    def test_slugify(self):
        assert text.slugify("Hello, World!  Deals_2024") == "hello-world-deals-2024"
        assert text.slugify("  --Trim me--  ") == "trim-me"

    def test_masking(self):
        assert text.mask_email("asha@example.com") == "as**@example.com"
        assert text.mask_phone("9876543210") == "98******10"

    def test_referral_code(self):
        code = text.referral_code("Asha Menon")
        assert code.startswith("ASH")
        assert len(code) == 8

    def test_gst_number(self):
        assert text.is_gst_number("32ABCDE1234F1Z5")
        assert not text.is_gst_number("32ABCDE1234F1X5")

    def test_to_csv(self):
        csv_text = text.to_csv([{"a": 1, "b": None, "c": "x"}], ["a", "b"])
        assert csv_text.splitlines() == ["a,b", "1,"]


class TestResponses:
    def test_success(self):
        body = responses.success({"id": 1}, "Done")
        assert body["success"] is True
        assert body["message"] == "Done"
        assert body["data"] == {"id": 1}
        assert "timestamp" in body

    def test_paginated(self):
        body = responses.paginated([1, 2], page=2, limit=2, total=5)
        assert body["pagination"] == {
            "current_page": 2,
            "total_pages": 3,
            "total_items": 5,
            "items_per_page": 2,
            "has_next": True,
            "has_prev": True,
        }

    def test_page_offset(self):
        assert responses.page_offset(1, 10) == 0
        assert responses.page_offset(3, 10) == 20
        assert responses.page_offset(0, 10) == 0

    def test_money_and_dates_are_plain_json(self):
        when = datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)
        ref = uuid.UUID("7d4f6f2e-3a65-4c1b-9a43-2f3c1f0e9b11")
        body = responses.success({"amount": Decimal("120.00"), "whole": Decimal("1500"), "at": when, "ref": ref})
        assert body["data"] == {
            "amount": 120.0,
            "whole": 1500.0,
            "at": "2026-05-01T09:30:00+00:00",
            "ref": "7d4f6f2e-3a65-4c1b-9a43-2f3c1f0e9b11",
        }
        assert isinstance(body["data"]["amount"], float)
