"""
Member auth dependency for `/api/users` routes.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status

from auth import security
from auth import service as auth_service
from auth.dependencies import get_bearer_token
from users import repository as users_repository


async def get_current_member(access_token: str = Depends(get_bearer_token)) -> dict:
    user_id = await auth_service.account_id_from_access_token(access_token, account_type=security.ACCOUNT_MEMBER)

    user = await users_repository.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found.")
    if not bool(user.get("is_active", False)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    return user
