"""
Auth endpoints — registration and the customer/console login flows.

Flows:
  - Mobile app:  POST /auth/login {phone}, /auth/request-otp + /auth/verify-otp,
                 or POST /auth/login-pin {identifier, pin}
  - Consoles:    POST /auth/login {email, password} (admin and delivery only)

Every successful login returns {token, user}; the token goes into
`Authorization: Bearer <jwt>` on later requests.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user
from domain.errors import ValidationError
from domain.responses import success_response
from middleware.auth import issue_access_token
from middleware.rate_limit import rate_limit
from models import (
    ChangePasswordRequest,
    ForgotPinRequest,
    LoginRequest,
    OtpRequest,
    PinLoginRequest,
    RegisterRequest,
    ResetPinRequest,
    SetPinRequest,
    UpdateProfileRequest,
    VerifyOtpRequest,
)
from services import user_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _session(user: User) -> dict:
    return {
        "token": issue_access_token(user.id, user.role),
        "user": user_service.serialize_user(user),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.register_customer(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        email=request.email,
        pin=request.pin,
        address=request.address.model_dump() if request.address else None,
    )
    await db.commit()
    logger.info(f"Customer registered: {user.id}")
    return success_response(_session(user), message="User registered successfully")


@router.post("/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=60)),
):
    if request.email or request.password:
        if not request.email or not request.password:
            raise ValidationError("Please provide email and password")
        user = await user_service.login_with_password(db, email=request.email, password=request.password)
    elif request.phone:
        user = await user_service.login_with_phone(db, phone=request.phone)
    else:
        raise ValidationError("Please provide phone number or email and password")
    return success_response(_session(user), message="Login successful")


@router.post("/login-pin")
async def login_pin(
    request: PinLoginRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=60)),
):
    user = await user_service.login_with_pin(db, identifier=request.identifier, pin=request.pin)
    return success_response(_session(user), message="Login successful")


@router.post("/request-otp")
async def request_otp(
    request: OtpRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=5, window_seconds=300)),
):
    data = await user_service.request_otp(db, phone=request.phone)
    await db.commit()
    return success_response(data, message="OTP sent successfully")


@router.post("/verify-otp")
async def verify_otp(
    request: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=300)),
):
    user = await user_service.verify_otp(db, phone=request.phone, otp=request.otp)
    await db.commit()
    return success_response(_session(user), message="OTP verified successfully")


@router.post("/forgot-pin")
async def forgot_pin(
    request: ForgotPinRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=5, window_seconds=300)),
):
    data = await user_service.forgot_pin(db, identifier=request.identifier)
    await db.commit()
    return success_response(data, message="OTP sent successfully")


@router.post("/reset-pin")
async def reset_pin(
    request: ResetPinRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=300)),
):
    await user_service.reset_pin(
        db,
        identifier=request.identifier,
        otp=request.otp,
        new_pin=request.new_pin,
        confirm_pin=request.confirm_pin,
    )
    await db.commit()
    return success_response(None, message="PIN reset successfully")


@router.post("/set-pin")
async def set_pin(
    request: SetPinRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=60)),
):
    await user_service.set_pin(db, user=user, pin=request.pin, confirm_pin=request.confirm_pin)
    await db.commit()
    return success_response(None, message="PIN set successfully")


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return success_response(user_service.serialize_user(user, include_addresses=True))


@router.put("/me")
async def update_me(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(
        db,
        user=user,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )
    await db.commit()
    return success_response(user_service.serialize_user(user, include_addresses=True))


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await user_service.change_password(
        db, user=user, current_password=request.current_password, new_password=request.new_password
    )
    await db.commit()
    return success_response(None, message="Password changed successfully")


@router.post("/logout")
async def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client simply discards it
    logger.info(f"User {user.id} logged out")
    return success_response(None, message="Logged out successfully")
