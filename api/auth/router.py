"""
Admin authentication endpoints.
"""

from fastapi import APIRouter, Depends, Request

from core import ratelimit, responses

from . import dependencies as auth_dependencies
from . import permissions, schemas, service

router = APIRouter(prefix="/api/admin/auth")


@router.post("/login")
@ratelimit.limiter.limit(ratelimit.LOGIN)
async def login(request: Request, payload: schemas.AdminLoginRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    result = await service.login(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(result.model_dump(), "Login successful")


@router.post("/refresh-token")
async def refresh_token(request: Request, payload: schemas.RefreshRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    tokens = await service.refresh(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(tokens.model_dump(), "Token refreshed")


@router.post("/logout")
async def logout(
    payload: schemas.LogoutRequest,
    current_admin: dict = Depends(auth_dependencies.get_current_admin),
) -> dict:
    await service.revoke_sessions(
        payload.refresh_token,
        account_type="admin",
        account_id=int(current_admin["id"]),
    )
    return responses.success(None, "Logout successful")


@router.get("/profile")
async def get_profile(current_admin: dict = Depends(auth_dependencies.get_current_admin)) -> dict:
    return responses.success(service.to_admin_response(current_admin).model_dump())


@router.put("/profile")
async def update_profile(
    payload: schemas.UpdateProfileRequest,
    current_admin: dict = Depends(auth_dependencies.get_current_admin),
) -> dict:
    admin = await service.update_profile(current_admin, payload)
    return responses.success(admin.model_dump(), "Profile updated successfully")


@router.put("/change-password")
async def change_password(
    payload: schemas.ChangePasswordRequest,
    current_admin: dict = Depends(auth_dependencies.get_current_admin),
) -> dict:
    await service.change_password(current_admin, payload)
    return responses.success(None, "Password changed successfully")


@router.get("/permissions")
async def get_permissions(current_admin: dict = Depends(auth_dependencies.get_current_admin)) -> dict:
    return responses.success(service.permissions_summary(current_admin))


@router.get("/permissions/check/{permission}")
async def check_permission(
    permission: str,
    current_admin: dict = Depends(auth_dependencies.get_current_admin),
) -> dict:
    granted = permissions.has_permission(str(current_admin["role"]), permission)
    return responses.success({"permission": permission, "granted": granted})


@router.post("/forgot-password")
@ratelimit.limiter.limit(ratelimit.PASSWORD_RESET)
async def forgot_password(request: Request, payload: schemas.ForgotPasswordRequest) -> dict:
    await service.forgot_password(payload)
    return responses.success(None, "If the email is registered, a reset link has been sent")


@router.post("/reset-password")
@ratelimit.limiter.limit(ratelimit.PASSWORD_RESET)
async def reset_password(request: Request, payload: schemas.ResetPasswordRequest) -> dict:
    await service.reset_password(payload)
    return responses.success(None, "Password reset successfully")


@router.get("/reset-password/{token}/validate")
async def validate_reset_token(token: str) -> dict:
    valid = await service.validate_reset_token(token)
    return responses.success({"valid": valid})
