"""
Coupon service — validity checks, discount calculation and redemptions.

A coupon is valid for an order amount when it is active, inside its
validity window, the amount reaches the minimum order value and the global
usage limit (if any) has not been hit. A customer who already redeemed a
coupon may reuse it while the global limit allows, so admins can raise the
limit to re-open a campaign.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Coupon, CouponRedemption
from domain.constants import (
    COUPON_EXHAUSTED_FOR_USER_MESSAGE,
    COUPON_INVALID_MESSAGE,
    CURRENCY_SYMBOL,
)
from domain.enums import CouponType
from domain.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def to_naive_utc(value: datetime) -> datetime:
    """DB columns hold naive UTC; aware inputs from clients are converted."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _limit_reached(coupon: Coupon) -> bool:
    # usage_limit of None or 0 means unlimited
    return bool(coupon.usage_limit) and (coupon.used_count or 0) >= coupon.usage_limit


def invalid_reason(
    coupon: Coupon,
    order_amount: float = 0,
    user_id: int | None = None,
    now: datetime | None = None,
) -> str | None:
    """
    Why `coupon` cannot be used right now, or None when it can.

    Reasons: inactive, not_started, expired, minimum_order, usage_limit,
    used_by_user (the caller already redeemed it and the limit is reached).
    """
    now = now or datetime.utcnow()
    if not coupon.is_active:
        return "inactive"
    if now < coupon.valid_from:
        return "not_started"
    if now > coupon.valid_to:
        return "expired"
    if order_amount < (coupon.minimum_order_value or 0):
        return "minimum_order"
    if _limit_reached(coupon):
        if user_id is not None and user_id in coupon.used_by:
            return "used_by_user"
        return "usage_limit"
    return None


def is_valid(
    coupon: Coupon,
    order_amount: float = 0,
    user_id: int | None = None,
    now: datetime | None = None,
) -> bool:
    return invalid_reason(coupon, order_amount, user_id, now) is None


def error_message(reason: str) -> str:
    if reason == "used_by_user":
        return COUPON_EXHAUSTED_FOR_USER_MESSAGE
    return COUPON_INVALID_MESSAGE


def ensure_usable(
    coupon: Coupon | None,
    order_amount: float,
    user_id: int | None,
    now: datetime | None = None,
) -> Coupon:
    """Raise ValidationError(400) with the client-facing message if unusable."""
    if coupon is None:
        raise ValidationError(COUPON_INVALID_MESSAGE, details={"reason": "not_found"})
    reason = invalid_reason(coupon, order_amount, user_id, now)
    if reason:
        raise ValidationError(error_message(reason), details={"reason": reason})
    return coupon


def calculate_discount(coupon: Coupon | None, order_amount: float, now: datetime | None = None) -> int:
    """
    Discount in whole rupees for `order_amount`.

    Percentage coupons are capped by maximum_discount when one is set;
    fixed coupons give their face value. Half-up rounding.
    """
    if coupon is None or not is_valid(coupon, order_amount, now=now):
        return 0

    if coupon.type == CouponType.PERCENTAGE.value:
        discount = Decimal(str(order_amount)) * Decimal(str(coupon.value)) / Decimal(100)
        if coupon.maximum_discount:
            discount = min(discount, Decimal(str(coupon.maximum_discount)))
    else:
        discount = Decimal(str(coupon.value))

    return int(discount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def formatted_discount(coupon: Coupon) -> str:
    value = int(coupon.value) if float(coupon.value).is_integer() else coupon.value
    if coupon.type == CouponType.PERCENTAGE.value:
        return f"{value}% off"
    return f"{CURRENCY_SYMBOL}{value} off"


def serialize_coupon(coupon: Coupon, *, admin: bool = False) -> dict:
    data = {
        "id": coupon.id,
        "code": coupon.code,
        "description": coupon.description,
        "type": coupon.type,
        "value": coupon.value,
        "minimumOrderValue": coupon.minimum_order_value,
        "maximumDiscount": coupon.maximum_discount,
        "validFrom": coupon.valid_from.isoformat() if coupon.valid_from else None,
        "validTo": coupon.valid_to.isoformat() if coupon.valid_to else None,
        "isActive": coupon.is_active,
        "formattedDiscount": formatted_discount(coupon),
    }
    if admin:
        data.update(
            usageLimit=coupon.usage_limit,
            usedCount=coupon.used_count,
            usedBy=coupon.used_by,
            createdAt=coupon.created_at.isoformat() if coupon.created_at else None,
        )
    return data


# ── Queries ─────────────────────────────────────────────────────────

async def get_by_code(db: AsyncSession, code: str) -> Coupon | None:
    res = await db.execute(select(Coupon).where(Coupon.code == normalize_code(code)))
    return res.scalar_one_or_none()


async def get_coupon(db: AsyncSession, coupon_id: int) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon", str(coupon_id))
    return coupon


async def list_active(db: AsyncSession, now: datetime | None = None) -> list[Coupon]:
    now = now or datetime.utcnow()
    res = await db.execute(
        select(Coupon)
        .where(
            Coupon.is_active == True,  # noqa: E712
            Coupon.valid_from <= now,
            Coupon.valid_to >= now,
        )
        .order_by(Coupon.created_at.desc(), Coupon.id.desc())
    )
    return res.scalars().all()


async def list_all(db: AsyncSession) -> list[Coupon]:
    res = await db.execute(select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()))
    return res.scalars().all()


async def validate_for_user(
    db: AsyncSession, *, code: str, order_amount: float, user_id: int
) -> tuple[Coupon, int]:
    """Look up and check a coupon for a user; returns (coupon, discount)."""
    coupon = ensure_usable(await get_by_code(db, code), order_amount, user_id)
    return coupon, calculate_discount(coupon, order_amount)


async def record_redemption(db: AsyncSession, *, coupon: Coupon, user_id: int) -> bool:
    """
    Add `user_id` to the coupon's used-by set.

    used_count grows once per user; repeat redemptions by the same user
    are no-ops. Returns True when a new redemption was recorded.
    """
    if user_id in coupon.used_by:
        return False
    coupon.redemptions.append(CouponRedemption(coupon_id=coupon.id, user_id=user_id))
    coupon.used_count = (coupon.used_count or 0) + 1
    await db.flush()
    logger.info(f"Coupon {coupon.code} redeemed by user {user_id} (used {coupon.used_count})")
    return True


# ── Admin ───────────────────────────────────────────────────────────

def _check_window(valid_from: datetime, valid_to: datetime) -> None:
    if valid_to < valid_from:
        raise ValidationError("validTo must be on or after validFrom")


async def _ensure_code_free(db: AsyncSession, code: str, exclude_id: int | None = None) -> None:
    existing = await get_by_code(db, code)
    if existing and existing.id != exclude_id:
        raise ConflictError(f"Coupon code {code} already exists")


async def create_coupon(
    db: AsyncSession,
    *,
    code: str,
    description: str,
    coupon_type: str,
    value: float,
    minimum_order_value: float = 0.0,
    maximum_discount: float | None = None,
    valid_from: datetime,
    valid_to: datetime,
    usage_limit: int | None = None,
    is_active: bool = True,
) -> Coupon:
    code = normalize_code(code)
    if not code:
        raise ValidationError("Coupon code is required")
    valid_from, valid_to = to_naive_utc(valid_from), to_naive_utc(valid_to)
    _check_window(valid_from, valid_to)
    await _ensure_code_free(db, code)

    coupon = Coupon(
        code=code,
        description=description,
        type=coupon_type,
        value=value,
        minimum_order_value=minimum_order_value,
        maximum_discount=maximum_discount,
        valid_from=valid_from,
        valid_to=valid_to,
        usage_limit=usage_limit,
        used_count=0,
        redemptions=[],
        is_active=is_active,
    )
    db.add(coupon)
    await db.flush()
    logger.info(f"Coupon created: {coupon.code}")
    return coupon


async def update_coupon(db: AsyncSession, *, coupon_id: int, changes: dict) -> Coupon:
    """Apply the provided (non-None) fields to a coupon."""
    coupon = await get_coupon(db, coupon_id)

    if changes.get("code") is not None:
        code = normalize_code(changes["code"])
        await _ensure_code_free(db, code, exclude_id=coupon.id)
        coupon.code = code
    for field in ("valid_from", "valid_to"):
        if changes.get(field) is not None:
            setattr(coupon, field, to_naive_utc(changes[field]))
    for field in (
        "description", "type", "value", "minimum_order_value",
        "maximum_discount", "usage_limit", "is_active",
    ):
        if changes.get(field) is not None:
            setattr(coupon, field, changes[field])

    _check_window(coupon.valid_from, coupon.valid_to)
    coupon.updated_at = datetime.utcnow()
    await db.flush()
    return coupon


async def soft_delete_coupon(db: AsyncSession, *, coupon_id: int) -> Coupon:
    coupon = await get_coupon(db, coupon_id)
    coupon.is_active = False
    coupon.updated_at = datetime.utcnow()
    await db.flush()
    return coupon
