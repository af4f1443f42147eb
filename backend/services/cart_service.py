"""
Cart service — one cart per user, created lazily.

Line prices are frozen when an item is added (discounted price if any,
else list price). Totals are recomputed on every read so the coupon
discount always reflects the current subtotal.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Cart, CartItem
from domain.errors import NotFoundError, ValidationError
from services import coupon_service, product_service
from utils.validators import format_price, resolve_image_url

logger = logging.getLogger(__name__)


async def get_or_create_cart(db: AsyncSession, *, user_id: int) -> Cart:
    res = await db.execute(select(Cart).where(Cart.user_id == user_id))
    cart = res.scalar_one_or_none()
    if cart is None:
        cart = Cart(user_id=user_id, items=[], applied_coupon=None)
        db.add(cart)
        await db.flush()
    return cart


def calculate_totals(cart: Cart) -> dict:
    """
    Returns totalItems, subtotal, discountAmount, finalAmount, totalAmount.

    finalAmount never drops below zero, even for a fixed coupon larger
    than the subtotal.
    """
    subtotal = sum(item.price_at_time * item.quantity for item in cart.items)
    total_items = sum(item.quantity for item in cart.items)
    discount = coupon_service.calculate_discount(cart.applied_coupon, subtotal) if cart.applied_coupon else 0
    final_amount = max(0, subtotal - discount)
    return {
        "totalItems": total_items,
        "subtotal": subtotal,
        "discountAmount": discount,
        "finalAmount": final_amount,
        "totalAmount": final_amount,
    }


def _serialize_item(item: CartItem) -> dict:
    product = item.product
    return {
        "id": item.id,
        "product": {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "discountedPrice": product.discounted_price,
            "image": resolve_image_url(product.image),
            "category": product.category,
            "weight": {"value": product.weight_value, "unit": product.weight_unit},
            "isActive": product.is_active,
        } if product is not None else None,
        "quantity": item.quantity,
        "priceAtTime": item.price_at_time,
        "subtotal": item.price_at_time * item.quantity,
    }


def serialize_cart(cart: Cart) -> dict:
    totals = calculate_totals(cart)
    applied = None
    if cart.applied_coupon is not None:
        applied = {
            "code": cart.applied_coupon.code,
            "discount": totals["discountAmount"],
            "appliedAt": (cart.coupon_applied_at or cart.updated_at or datetime.utcnow()).isoformat(),
        }
    return {
        "id": cart.id,
        "user": cart.user_id,
        "items": [_serialize_item(i) for i in cart.items],
        "appliedCoupon": applied,
        **totals,
        "formattedTotal": format_price(totals["finalAmount"]),
        "updatedAt": cart.updated_at.isoformat() if cart.updated_at else None,
    }


def summarize_cart(cart: Cart) -> dict:
    totals = calculate_totals(cart)
    return {
        "itemCount": totals["totalItems"],
        "totalAmount": totals["finalAmount"],
        "formattedTotal": format_price(totals["finalAmount"]),
        "items": [
            {
                "productId": item.product_id,
                "name": item.product.name if item.product is not None else None,
                "quantity": item.quantity,
                "priceAtTime": item.price_at_time,
                "subtotal": item.price_at_time * item.quantity,
            }
            for item in cart.items
        ],
    }


def _touch(cart: Cart) -> None:
    cart.updated_at = datetime.utcnow()


async def add_item(db: AsyncSession, *, user_id: int, product_id: int, quantity: int) -> Cart:
    """Add a product; an existing line for the same product is merged."""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    product = await product_service.get_product(db, product_id=product_id)
    cart = await get_or_create_cart(db, user_id=user_id)

    existing = next((i for i in cart.items if i.product_id == product.id), None)
    if existing:
        existing.quantity += quantity
    else:
        cart.items.append(
            CartItem(product_id=product.id, product=product, quantity=quantity, price_at_time=product.selling_price)
        )
    _touch(cart)
    await db.flush()
    return cart


def _find_item(cart: Cart, item_id: int) -> CartItem:
    item = next((i for i in cart.items if i.id == item_id), None)
    if item is None:
        raise NotFoundError("Cart item")
    return item


async def update_item(db: AsyncSession, *, user_id: int, item_id: int, quantity: int) -> Cart:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    cart = await get_or_create_cart(db, user_id=user_id)
    _find_item(cart, item_id).quantity = quantity
    _touch(cart)
    await db.flush()
    return cart


async def remove_item(db: AsyncSession, *, user_id: int, item_id: int) -> Cart:
    cart = await get_or_create_cart(db, user_id=user_id)
    cart.items.remove(_find_item(cart, item_id))
    _touch(cart)
    await db.flush()
    return cart


async def clear_cart(db: AsyncSession, *, cart: Cart) -> Cart:
    """Empty the items and drop the coupon."""
    cart.items.clear()
    cart.applied_coupon = None
    cart.coupon_applied_at = None
    _touch(cart)
    await db.flush()
    return cart


async def apply_coupon(db: AsyncSession, *, user_id: int, code: str) -> Cart:
    cart = await get_or_create_cart(db, user_id=user_id)
    if not cart.items:
        raise ValidationError("Cart is empty")

    subtotal = calculate_totals(cart)["subtotal"]
    coupon = coupon_service.ensure_usable(
        await coupon_service.get_by_code(db, code), subtotal, user_id
    )
    cart.applied_coupon = coupon
    cart.coupon_applied_at = datetime.utcnow()
    _touch(cart)
    await db.flush()
    logger.info(f"Coupon {coupon.code} applied to cart of user {user_id}")
    return cart


async def remove_coupon(db: AsyncSession, *, user_id: int) -> Cart:
    cart = await get_or_create_cart(db, user_id=user_id)
    cart.applied_coupon = None
    cart.coupon_applied_at = None
    _touch(cart)
    await db.flush()
    return cart
