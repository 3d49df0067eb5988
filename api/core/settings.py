"""
Environment-driven settings.

Everything is read from os.environ at call time, so tests can monkeypatch
variables without reloading modules. Defaults target local development.
"""

from __future__ import annotations

import os


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def app_name() -> str:
    return env_str("APP_NAME", "Discount Card Platform")


def environment() -> str:
    return env_str("APP_ENV", "development").lower()


def is_development() -> bool:
    return environment() == "development"


def frontend_origins() -> list[str]:
    raw = env_str("FRONTEND_URL", "http://localhost:3000")
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


def upload_dir() -> str:
    return env_str("UPLOAD_DIR", "uploads")


def max_image_bytes() -> int:
    return env_int("MAX_IMAGE_BYTES", 5 * 1024 * 1024)


def default_admin_email() -> str:
    return env_str("DEFAULT_ADMIN_EMAIL", "admin@discountcard.local")


def default_admin_password() -> str:
    return env_str("DEFAULT_ADMIN_PASSWORD", "Admin@12345")
