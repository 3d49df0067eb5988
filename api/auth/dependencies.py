"""
Auth dependencies for protected FastAPI routes.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, Request, status

from . import permissions, service


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
        )

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format.",
        )

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization must be: Bearer <token>.",
        )
    return token


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def get_current_admin(access_token: str = Depends(get_bearer_token)) -> dict:
    return await service.get_admin_from_access_token(access_token)


def require_permission(permission: str) -> Callable:
    async def checker(current_admin: dict = Depends(get_current_admin)) -> dict:
        if not permissions.has_permission(str(current_admin.get("role")), permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_admin

    return checker


def require_roles(*roles: str) -> Callable:
    async def checker(current_admin: dict = Depends(get_current_admin)) -> dict:
        if str(current_admin.get("role")) not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_admin

    return checker


def client_meta(request: Request) -> tuple[str | None, str | None]:
    user_agent = request.headers.get("user-agent")
    ip_address = request.client.host if request.client else None
    return user_agent, ip_address
