"""Shared fixtures: an app client with the database and auth stubbed out."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from auth.dependencies import get_current_admin
from core import ratelimit
from main import app
from members.dependencies import get_current_member


def _admin(role):
    return {
        "id": 1,
        "username": "admin",
        "email": "admin@example.com",
        "phone": None,
        "full_name": "Test Admin",
        "role": role,
        "is_active": True,
        "avatar": None,
        "last_login": None,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def client():
    ratelimit.limiter.enabled = False
    # No `with`: startup would open the database pool.
    yield TestClient(app)
    app.dependency_overrides.clear()
    ratelimit.limiter.enabled = True


@pytest.fixture
def as_admin():
    """Authenticate admin routes as the given role."""

    def _login(role="super_admin"):
        admin = _admin(role)
        app.dependency_overrides[get_current_admin] = lambda: admin
        return admin

    return _login


@pytest.fixture
def member():
    user = {
        "id": 7,
        "full_name": "Asha Menon",
        "email": "asha@example.com",
        "phone": "9876543210",
        "current_tier": "Silver",
        "total_spent": 30000,
        "is_active": True,
        "is_profile_complete": True,
    }
    app.dependency_overrides[get_current_member] = lambda: user
    return user
