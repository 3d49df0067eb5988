"""
Member self-service endpoints under /api/users.
"""

from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Request, UploadFile

from auth import dependencies as auth_dependencies
from auth import schemas as auth_schemas
from auth import security
from auth import service as auth_service
from cards import service as cards_service
from core import ratelimit, responses
from otp import schemas as otp_schemas
from otp import service as otp_service

from . import schemas, service
from .dependencies import get_current_member

router = APIRouter(prefix="/api/users")


@router.post("/signup", status_code=201)
@ratelimit.limiter.limit(ratelimit.LOGIN)
async def signup(request: Request, payload: schemas.SignupRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    result = await service.signup(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(result, "Account created. Complete your profile to get your card.")


@router.post("/create-profile", status_code=201)
async def create_profile(payload: schemas.CreateProfileRequest) -> dict:
    result = await service.create_profile(payload)
    return responses.success(result, "Profile completed and discount card issued")


@router.post("/login")
@ratelimit.limiter.limit(ratelimit.LOGIN)
async def login(request: Request, payload: schemas.MemberLoginRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    result = await service.login(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(result, "Login successful")


@router.post("/refresh-token")
async def refresh_token(request: Request, payload: auth_schemas.RefreshRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    tokens = await service.refresh(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(tokens.model_dump(), "Token refreshed")


@router.post("/logout")
async def logout(
    payload: auth_schemas.LogoutRequest,
    current_user: dict = Depends(get_current_member),
) -> dict:
    await auth_service.revoke_sessions(
        payload.refresh_token,
        account_type=security.ACCOUNT_MEMBER,
        account_id=int(current_user["id"]),
    )
    return responses.success(None, "Logout successful")


@router.get("/profile")
async def get_profile(current_user: dict = Depends(get_current_member)) -> dict:
    return responses.success(await service.get_profile(current_user))


@router.put("/profile")
async def update_profile(
    payload: schemas.UpdateMemberProfileRequest,
    current_user: dict = Depends(get_current_member),
) -> dict:
    user = await service.update_profile(current_user, payload)
    return responses.success(user, "Profile updated successfully")


@router.get("/profile-status")
async def profile_status(current_user: dict = Depends(get_current_member)) -> dict:
    return responses.success(await service.profile_status(current_user))


@router.put("/change-password")
async def change_password(
    payload: auth_schemas.ChangePasswordRequest,
    current_user: dict = Depends(get_current_member),
) -> dict:
    await service.change_password(current_user, payload)
    return responses.success(None, "Password changed successfully")


@router.post("/forgot-password")
@ratelimit.limiter.limit(ratelimit.PASSWORD_RESET)
async def forgot_password(request: Request, payload: schemas.ForgotPasswordRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    result = await service.forgot_password(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(result, "If an account exists, a verification code has been sent")


@router.post("/reset-password")
@ratelimit.limiter.limit(ratelimit.PASSWORD_RESET)
async def reset_password(request: Request, payload: schemas.ResetPasswordRequest) -> dict:
    await service.reset_password(payload)
    return responses.success(None, "Password reset successfully")


@router.post("/upload-avatar")
async def upload_avatar(
    avatar: UploadFile = File(...),
    current_user: dict = Depends(get_current_member),
) -> dict:
    result = await service.upload_avatar(current_user, avatar)
    return responses.success(result, "Avatar uploaded successfully")


@router.get("/card")
async def get_card(current_user: dict = Depends(get_current_member)) -> dict:
    return responses.success(await service.get_card(current_user))


@router.post("/card/activate")
async def activate_card(current_user: dict = Depends(get_current_member)) -> dict:
    card = await cards_service.activate(int(current_user["id"]))
    return responses.success(card, "Card activated successfully")


@router.post("/card/renew")
async def renew_card(
    payload: schemas.RenewCardRequest,
    current_user: dict = Depends(get_current_member),
) -> dict:
    card = await cards_service.renew(int(current_user["id"]), months=payload.months)
    return responses.success(card, f"Card renewed for {payload.months} months")


@router.get("/discount-status")
async def discount_status(current_user: dict = Depends(get_current_member)) -> dict:
    return responses.success(await service.discount_status(current_user))


@router.get("/discount-history")
async def discount_history(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    current_user: dict = Depends(get_current_member),
) -> dict:
    return await service.discount_history(
        current_user,
        page=page,
        limit=limit,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/newsletter/subscribe")
async def subscribe_newsletter(payload: schemas.NewsletterRequest, background_tasks: BackgroundTasks) -> dict:
    result = await service.subscribe_newsletter(payload)
    background_tasks.add_task(service.send_newsletter_welcome, result["email"])
    return responses.success(result, "Subscribed to newsletter")


@router.post("/otp/send")
@ratelimit.limiter.limit(ratelimit.OTP_REQUEST)
async def send_otp(request: Request, payload: otp_schemas.SendOTPRequest) -> dict:
    user_agent, ip_address = auth_dependencies.client_meta(request)
    session = await otp_service.request_otp(payload, user_agent=user_agent, ip_address=ip_address)
    return responses.success(session, f"OTP sent successfully to your {payload.channel}")


@router.post("/otp/verify")
@ratelimit.limiter.limit(ratelimit.OTP_VERIFY)
async def verify_otp(request: Request, payload: otp_schemas.VerifyOTPRequest) -> dict:
    result = await otp_service.verify(payload.session_id, payload.otp)
    return responses.success(result, "OTP verification successful")


@router.post("/otp/resend")
@ratelimit.limiter.limit(ratelimit.OTP_REQUEST)
async def resend_otp(request: Request, payload: otp_schemas.ResendOTPRequest) -> dict:
    session = await otp_service.resend(payload.session_id)
    return responses.success(session, "OTP resent successfully")


@router.get("/otp/history")
async def otp_history(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    purpose: otp_schemas.Purpose | None = Query(default=None),
    current_user: dict = Depends(get_current_member),
) -> dict:
    return await otp_service.history(int(current_user["id"]), page=page, limit=limit, purpose=purpose)
