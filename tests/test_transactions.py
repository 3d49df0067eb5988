"""Tests for discount previews and recording card transactions."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cards import repository as cards_repository
from core import db
from discounts import repository as discounts_repository
from transactions import repository
from users import repository as users_repository


def _rules():
    return [
        {"id": 2, "rule_name": "Silver weekday", "discount_percentage": Decimal("8"), "shop_id": None, "tier": "Silver"},
        {"id": 5, "rule_name": "Silver at Spice Route", "discount_percentage": Decimal("8"), "shop_id": 4, "tier": "Silver"},
    ]


@pytest.fixture
def fake_rules(monkeypatch):
    seen = {}

    async def fake_find(*, amount, tier, shop_id, now):
        seen.update(amount=amount, tier=tier, shop_id=shop_id)
        return _rules()

    monkeypatch.setattr(discounts_repository, "find_applicable_rules", fake_find)
    return seen


class TestCalculationPreview:
    def test_best_rule_applied(self, client, as_admin, fake_rules):
        as_admin("moderator")
        resp = client.post("/api/admin/discounts/test-calculation", json={"amount": "1500", "tier": "Silver"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["best_discount"]["id"] == 5
        assert data["discount_amount"] == 120.0
        assert data["final_amount"] == 1380.0
        assert fake_rules["shop_id"] is None

    def test_unknown_tier_rejected(self, client, as_admin):
        as_admin("admin")
        resp = client.post("/api/admin/discounts/test-calculation", json={"amount": "1500", "tier": "Diamond"})
        assert resp.status_code == 422
        assert resp.json()["message"] == "Validation failed"


class TestRecordTransaction:
    card_number = "4000123412341234"

    @pytest.fixture
    def card(self, monkeypatch):
        card = {
            "id": 3,
            "user_id": 7,
            "card_number": self.card_number,
            "is_active": True,
            "expires_at": datetime.now(timezone.utc) + timedelta(days=90),
        }

        async def fake_card(number):
            return card if number == self.card_number else None

        monkeypatch.setattr(cards_repository, "get_card_by_number", fake_card)
        return card

    @pytest.fixture
    def user(self, monkeypatch):
        user = {"id": 7, "current_tier": "Silver", "is_active": True}

        async def fake_user(user_id):
            return user

        monkeypatch.setattr(users_repository, "get_user_by_id", fake_user)
        return user

    def test_records_with_best_discount(self, client, as_admin, monkeypatch, card, user, fake_rules):
        as_admin("admin")
        recorded = {}

        async def fake_record(**kwargs):
            recorded.update(kwargs)
            return {"id": 90, **kwargs, "status": "completed"}, "Silver"

        monkeypatch.setattr(repository, "record_transaction", fake_record)
        resp = client.post(
            "/api/admin/transactions",
            json={"card_number": self.card_number, "amount": "2000.00", "payment_method": "upi"},
        )
        assert resp.status_code == 201
        assert recorded["discount_rule_id"] == 5
        assert recorded["discount_amount"] == Decimal("160.00")
        assert recorded["final_amount"] == Decimal("1840.00")
        assert recorded["transaction_ref"].startswith("TXN")
        assert resp.json()["data"]["tier_changed"] is False

    def test_expired_card(self, client, as_admin, card):
        as_admin("admin")
        card["expires_at"] = datetime.now(timezone.utc) - timedelta(days=1)
        resp = client.post("/api/admin/transactions", json={"card_number": self.card_number, "amount": "100"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Discount card is expired"

    def test_unknown_card(self, client, as_admin, card):
        as_admin("admin")
        resp = client.post("/api/admin/transactions", json={"card_number": "1111222233334444", "amount": "100"})
        assert resp.status_code == 404

    def test_exhausted_rule_is_replaced(self, client, as_admin, monkeypatch, card, user):
        as_admin("admin")
        pools = iter([_rules(), _rules()[:1]])
        recorded = []

        async def fake_find(*, amount, tier, shop_id, now):
            return next(pools)

        async def fake_record(**kwargs):
            recorded.append(kwargs["discount_rule_id"])
            if kwargs["discount_rule_id"] == 5:
                raise repository.RuleUsageExhausted(5)
            return {"id": 91, **kwargs, "status": "completed"}, "Silver"

        monkeypatch.setattr(discounts_repository, "find_applicable_rules", fake_find)
        monkeypatch.setattr(repository, "record_transaction", fake_record)
        resp = client.post("/api/admin/transactions", json={"card_number": self.card_number, "amount": "1000"})
        assert resp.status_code == 201
        assert recorded == [5, 2]
        assert resp.json()["data"]["applied_rule"]["id"] == 2

    def test_rules_keep_running_out(self, client, as_admin, monkeypatch, card, user, fake_rules):
        as_admin("admin")

        async def fake_record(**kwargs):
            raise repository.RuleUsageExhausted(kwargs["discount_rule_id"])

        monkeypatch.setattr(repository, "record_transaction", fake_record)
        resp = client.post("/api/admin/transactions", json={"card_number": self.card_number, "amount": "1000"})
        assert resp.status_code == 409


class TestStatusChange:
    @pytest.fixture
    def stored(self, monkeypatch):
        transaction = {"id": 40, "user_id": 7, "shop_id": 4, "status": "completed"}

        async def fake_get(transaction_id):
            return transaction if transaction_id == 40 else None

        monkeypatch.setattr(repository, "get_transaction", fake_get)
        return transaction

    def test_refund_completed(self, client, as_admin, monkeypatch, stored):
        as_admin("admin")

        async def fake_change(transaction, *, new_status):
            return {**transaction, "status": new_status}

        monkeypatch.setattr(repository, "change_status", fake_change)
        resp = client.put("/api/admin/transactions/40/status", json={"status": "refunded"})
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "refunded"

    def test_illegal_move(self, client, as_admin, stored):
        as_admin("admin")
        stored["status"] = "cancelled"
        resp = client.put("/api/admin/transactions/40/status", json={"status": "completed"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot change transaction status from cancelled to completed"

    def test_changed_concurrently(self, client, as_admin, monkeypatch, stored):
        as_admin("admin")

        async def fake_change(transaction, *, new_status):
            return None

        monkeypatch.setattr(repository, "change_status", fake_change)
        resp = client.put("/api/admin/transactions/40/status", json={"status": "refunded"})
        assert resp.status_code == 409

    def test_unknown_transaction(self, client, as_admin, stored):
        as_admin("admin")
        resp = client.put("/api/admin/transactions/41/status", json={"status": "refunded"})
        assert resp.status_code == 404


class _FakeConn:
    """Records the statements a repository call runs inside its DB transaction."""

    def __init__(self, *, rule_available=True, total_spent=Decimal("0")):
        self.rule_available = rule_available
        self.total_spent = total_spent
        self.statements = []

    async def fetchrow(self, sql, *args):
        self.statements.append((sql, args))
        if "UPDATE discount_rules" in sql:
            return {"id": args[0]} if self.rule_available else None
        if "INSERT INTO transactions" in sql:
            return {"id": 90}
        if "UPDATE transactions" in sql:
            return {"id": args[0]}
        return {"id": args[0], "status": "refunded"}

    async def fetchval(self, sql, *args):
        self.statements.append((sql, args))
        return self.total_spent

    async def execute(self, sql, *args):
        self.statements.append((sql, args))
        return "UPDATE 1"

    def ran(self, fragment):
        return [args for sql, args in self.statements if fragment in sql]


@pytest.fixture
def fake_conn(monkeypatch):
    holder = {}

    @asynccontextmanager
    async def fake_transaction():
        yield holder["conn"]

    monkeypatch.setattr(db, "transaction", fake_transaction)

    def _use(conn):
        holder["conn"] = conn
        return conn

    return _use


@pytest.mark.asyncio
class TestRepositoryEffects:
    record_args = {
        "transaction_ref": "TXN0000000000000001",
        "user_id": 7,
        "card_id": 3,
        "shop_id": 4,
        "discount_rule_id": 5,
        "amount": Decimal("2000.00"),
        "discount_percentage": Decimal("8"),
        "discount_amount": Decimal("160.00"),
        "final_amount": Decimal("1840.00"),
        "payment_method": "upi",
    }

    async def test_used_up_rule_writes_nothing(self, fake_conn):
        conn = fake_conn(_FakeConn(rule_available=False))
        with pytest.raises(repository.RuleUsageExhausted):
            await repository.record_transaction(**self.record_args)
        assert conn.ran("INSERT INTO transactions") == []
        assert conn.ran("UPDATE users") == []

    async def test_usage_claim_respects_max_usage(self, fake_conn):
        conn = fake_conn(_FakeConn(total_spent=Decimal("32000.00")))
        _, tier = await repository.record_transaction(**self.record_args)
        claim_sql = next(sql for sql, _ in conn.statements if "UPDATE discount_rules" in sql)
        assert "usage_count < max_usage" in claim_sql
        assert tier == "Silver"

    async def test_refund_reverses_totals_and_tier(self, fake_conn):
        conn = fake_conn(_FakeConn(total_spent=Decimal("22000.00")))
        transaction = {
            "id": 40,
            "user_id": 7,
            "shop_id": 4,
            "status": "completed",
            "amount": Decimal("8000.00"),
            "final_amount": Decimal("7200.00"),
        }
        updated = await repository.change_status(transaction, new_status="refunded")
        assert updated["status"] == "refunded"
        assert conn.ran("SET total_spent")[0] == (7, Decimal("-8000.00"))
        assert (7, "Bronze") in conn.ran("SET current_tier")
        assert conn.ran("UPDATE shops")[0] == (4, Decimal("-8000.00"), Decimal("-7200.00"), -1)

    async def test_cancel_pending_leaves_totals(self, fake_conn):
        conn = fake_conn(_FakeConn())
        transaction = {
            "id": 41,
            "user_id": 7,
            "shop_id": None,
            "status": "pending",
            "amount": Decimal("500.00"),
            "final_amount": Decimal("500.00"),
        }
        await repository.change_status(transaction, new_status="cancelled")
        assert conn.ran("SET total_spent") == []
