"""Tests for role permissions, tokens and admin login."""

from datetime import datetime, timedelta, timezone

import pytest

from auth import permissions, repository, security


class TestPermissions:
    def test_super_admin_has_everything(self):
        assert permissions.permissions_for_role("super_admin") == list(permissions.PERMISSIONS)

    @pytest.mark.parametrize("permission", ["users.delete", "shops.create", "shops.delete", "otp.manage"])
    def test_admin_denied(self, permission):
        assert not permissions.has_permission("admin", permission)

    def test_admin_can_approve_shops(self):
        assert permissions.has_permission("admin", "shops.approve")

    @pytest.mark.parametrize(
        "permission",
        ["shops.approve", "shops.reject", "users.delete", "users.export", "users.bulk_operations", "content.blogs.delete"],
    )
    def test_moderator_denied(self, permission):
        assert not permissions.has_permission("moderator", permission)

    def test_moderator_can_edit_content(self):
        assert permissions.has_permission("moderator", "content.blogs.update")

    def test_unknown_role(self):
        assert permissions.permissions_for_role("guest") == []

    def test_grouped_by_module(self):
        groups = permissions.grouped_permissions("moderator")
        assert "analytics" in groups
        assert "analytics.revenue" not in groups["analytics"]


class TestSecurity:
    def test_password_hash_roundtrip(self):
        hashed = security.hash_password("Secret123")
        assert security.verify_password("Secret123", hashed)
        assert not security.verify_password("secret123", hashed)

    def test_verify_against_garbage_hash(self):
        assert not security.verify_password("Secret123", "not-a-hash")

    def test_member_token_rejected_on_admin_area(self):
        token = security.build_access_token(account_id=3, account_type=security.ACCOUNT_MEMBER, email=None)
        assert security.decode_access_token(token, account_type=security.ACCOUNT_MEMBER)["sub"] == "3"
        with pytest.raises(security.AuthSecurityError):
            security.decode_access_token(token, account_type=security.ACCOUNT_ADMIN)

    def test_expired_token(self):
        token = security.build_access_token(
            account_id=1,
            account_type=security.ACCOUNT_ADMIN,
            email="a@example.com",
            expires_minutes=-1,
        )
        with pytest.raises(security.AuthSecurityError, match="expired"):
            security.decode_access_token(token, account_type=security.ACCOUNT_ADMIN)

    def test_token_hash_is_stable(self):
        assert security.hash_token("abc") == security.hash_token("abc")
        assert security.hash_token("abc") != security.hash_token("abd")


class TestAdminLogin:
    @pytest.fixture
    def admin_row(self):
        return {
            "id": 1,
            "username": "root",
            "email": "root@example.com",
            "phone": None,
            "full_name": "Root Admin",
            "role": "super_admin",
            "is_active": True,
            "avatar": None,
            "last_login": None,
            "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "password_hash": security.hash_password("Secret123"),
            "lock_until": None,
            "login_attempts": 0,
        }

    def test_locked_account(self, client, monkeypatch, admin_row):
        admin_row["lock_until"] = datetime.now(timezone.utc) + timedelta(minutes=10)

        async def fake_get(email):
            return admin_row

        monkeypatch.setattr(repository, "get_admin_by_email", fake_get)
        resp = client.post("/api/admin/auth/login", json={"email": "root@example.com", "password": "Secret123"})
        assert resp.status_code == 423
        body = resp.json()
        assert body["success"] is False
        assert body["errors"]["lock_time_remaining"] == 10

    def test_wrong_password_records_failure(self, client, monkeypatch, admin_row):
        calls = []

        async def fake_get(email):
            return admin_row

        async def fake_failed(admin_id, *, max_attempts, lock_minutes):
            calls.append((admin_id, max_attempts, lock_minutes))
            return {"login_attempts": 1, "lock_until": None}

        monkeypatch.setattr(repository, "get_admin_by_email", fake_get)
        monkeypatch.setattr(repository, "record_failed_login", fake_failed)
        resp = client.post("/api/admin/auth/login", json={"email": "root@example.com", "password": "Wrong1234"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"
        assert calls == [(1, 5, 30)]

    def test_unknown_email(self, client, monkeypatch):
        async def fake_get(email):
            return None

        monkeypatch.setattr(repository, "get_admin_by_email", fake_get)
        resp = client.post("/api/admin/auth/login", json={"email": "nobody@example.com", "password": "Secret123"})
        assert resp.status_code == 401

    def test_missing_bearer_token(self, client):
        resp = client.get("/api/admin/users")
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_moderator_cannot_delete_users(self, client, as_admin):
        as_admin("moderator")
        resp = client.delete("/api/admin/users/5")
        assert resp.status_code == 403
        assert resp.json()["message"] == "Insufficient permissions"

    @pytest.mark.parametrize("path", ["/api/admin/users/5", "/api/admin/shops/5"])
    def test_only_super_admin_deletes(self, client, as_admin, path):
        as_admin("admin")
        resp = client.delete(path)
        assert resp.status_code == 403


class TestRefreshRotation:
    raw = "r" * 40

    @pytest.fixture
    def store(self, monkeypatch):
        calls = {"revoked": [], "used": [], "replaced": [], "inserted": []}
        row = {
            "id": 3,
            "account_type": "admin",
            "account_id": 1,
            "revoked_at": None,
            "expires_at": datetime.now(timezone.utc) + timedelta(days=2),
        }

        async def fake_by_hash(token_hash):
            return row if token_hash == security.hash_token(self.raw) else None

        async def fake_revoke(token_id):
            calls["revoked"].append(token_id)

        async def fake_used(token_id):
            calls["used"].append(token_id)

        async def fake_insert(**kwargs):
            calls["inserted"].append(kwargs["account_type"])
            return {"id": 9}

        async def fake_replace(*, old_token_id, new_token_id):
            calls["replaced"].append((old_token_id, new_token_id))

        async def fake_admin(admin_id):
            return {"id": admin_id, "email": "admin@example.com", "role": "admin", "is_active": True}

        monkeypatch.setattr(repository, "get_refresh_token_by_hash", fake_by_hash)
        monkeypatch.setattr(repository, "revoke_refresh_token_by_id", fake_revoke)
        monkeypatch.setattr(repository, "mark_refresh_token_used", fake_used)
        monkeypatch.setattr(repository, "insert_refresh_token", fake_insert)
        monkeypatch.setattr(repository, "set_refresh_token_replacement", fake_replace)
        monkeypatch.setattr(repository, "get_admin_by_id", fake_admin)
        return row, calls

    def test_rotates_and_links_replacement(self, client, store):
        _, calls = store
        resp = client.post("/api/admin/auth/refresh-token", json={"refresh_token": self.raw})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["refresh_token"] != self.raw
        assert calls["revoked"] == [3]
        assert calls["replaced"] == [(3, 9)]
        assert calls["inserted"] == ["admin"]

    def test_revoked_token(self, client, store):
        row, calls = store
        row["revoked_at"] = datetime.now(timezone.utc)
        resp = client.post("/api/admin/auth/refresh-token", json={"refresh_token": self.raw})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Refresh token is revoked."
        assert calls["inserted"] == []

    def test_expired_token_is_revoked(self, client, store):
        row, calls = store
        row["expires_at"] = datetime.now(timezone.utc) - timedelta(minutes=1)
        resp = client.post("/api/admin/auth/refresh-token", json={"refresh_token": self.raw})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Refresh token is expired."
        assert calls["revoked"] == [3]

    def test_admin_token_rejected_for_members(self, client, store):
        _, calls = store
        resp = client.post("/api/users/refresh-token", json={"refresh_token": self.raw})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid refresh token."
        assert calls["revoked"] == []

    def test_unknown_token(self, client, store):
        resp = client.post("/api/admin/auth/refresh-token", json={"refresh_token": "x" * 40})
        assert resp.status_code == 401
