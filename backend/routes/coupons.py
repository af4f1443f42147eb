"""
Coupon endpoints for customers. Admin CRUD lives in routes/admin.py.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user
from domain.errors import NotFoundError
from domain.responses import success_response
from models import CouponCodeRequest, ValidateCouponRequest
from services import coupon_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.get("/active")
async def active_coupons(db: AsyncSession = Depends(get_db)):
    coupons = await coupon_service.list_active(db)
    return success_response(
        [coupon_service.serialize_coupon(c) for c in coupons],
        meta={"count": len(coupons)},
    )


@router.post("/validate")
async def validate_coupon(
    request: ValidateCouponRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    coupon, discount = await coupon_service.validate_for_user(
        db, code=request.code, order_amount=request.order_amount, user_id=user.id
    )
    return success_response(
        {
            "coupon": coupon_service.serialize_coupon(coupon),
            "discount": discount,
            "applicableAmount": max(0, request.order_amount - discount),
        },
        message="Coupon is valid",
    )


@router.post("/apply")
async def apply_coupon(
    request: CouponCodeRequest,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    coupon = await coupon_service.get_by_code(db, request.code)
    if coupon is None or not coupon.is_active:
        raise NotFoundError("Coupon")
    return success_response(coupon_service.serialize_coupon(coupon))
