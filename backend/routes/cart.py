"""
Cart endpoints — every mutation returns the recalculated cart.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user
from domain.responses import success_response
from models import AddToCartRequest, CouponCodeRequest, UpdateCartItemRequest
from services import cart_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
async def get_cart(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    cart = await cart_service.get_or_create_cart(db, user_id=user.id)
    await db.commit()
    return success_response(cart_service.serialize_cart(cart))


@router.get("/summary")
async def cart_summary(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    cart = await cart_service.get_or_create_cart(db, user_id=user.id)
    await db.commit()
    return success_response(cart_service.summarize_cart(cart))


@router.post("/add")
async def add_to_cart(
    request: AddToCartRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cart = await cart_service.add_item(
        db, user_id=user.id, product_id=request.product_id, quantity=request.quantity
    )
    await db.commit()
    return success_response(cart_service.serialize_cart(cart), message="Item added to cart")


@router.put("/update/{item_id}")
async def update_cart_item(
    item_id: int,
    request: UpdateCartItemRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cart = await cart_service.update_item(db, user_id=user.id, item_id=item_id, quantity=request.quantity)
    await db.commit()
    return success_response(cart_service.serialize_cart(cart), message="Cart updated")


@router.delete("/remove/{item_id}")
async def remove_cart_item(
    item_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cart = await cart_service.remove_item(db, user_id=user.id, item_id=item_id)
    await db.commit()
    return success_response(cart_service.serialize_cart(cart), message="Item removed from cart")


@router.delete("/clear")
async def clear_cart(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    cart = await cart_service.get_or_create_cart(db, user_id=user.id)
    cart = await cart_service.clear_cart(db, cart=cart)
    await db.commit()
    return success_response(cart_service.serialize_cart(cart), message="Cart cleared")


@router.post("/apply-coupon")
async def apply_coupon(
    request: CouponCodeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cart = await cart_service.apply_coupon(db, user_id=user.id, code=request.code)
    await db.commit()
    return success_response(cart_service.serialize_cart(cart), message="Coupon applied successfully")


@router.delete("/remove-coupon")
async def remove_coupon(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    cart = await cart_service.remove_coupon(db, user_id=user.id)
    await db.commit()
    return success_response(cart_service.serialize_cart(cart), message="Coupon removed")
