"""
Tests for the cart service: lazy creation, frozen prices, totals and coupons.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from fastapi import HTTPException

from domain.constants import COUPON_EXHAUSTED_FOR_USER_MESSAGE, COUPON_INVALID_MESSAGE
from services import cart_service, coupon_service


pytestmark = pytest.mark.integration


async def test_cart_created_lazily_once(db_session, make_user):
    user = await make_user()
    first = await cart_service.get_or_create_cart(db_session, user_id=user.id)
    second = await cart_service.get_or_create_cart(db_session, user_id=user.id)
    assert first.id == second.id
    assert first.items == []


async def test_price_frozen_at_add_time(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product(price=1500, discounted_price=1200)

    cart = await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=2)
    product.discounted_price = 1000
    await db_session.flush()

    assert cart.items[0].price_at_time == 1200
    assert cart_service.calculate_totals(cart)["subtotal"] == 2400


async def test_list_price_used_without_discount(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product(price=400)
    cart = await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    assert cart.items[0].price_at_time == 400


async def test_quantities_merge(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product()
    await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    cart = await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=3)
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 4


async def test_inactive_product_rejected(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product(is_active=False)
    with pytest.raises(HTTPException) as exc_info:
        await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    assert exc_info.value.status_code == 404


async def test_update_and_remove(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product()
    cart = await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    item_id = cart.items[0].id

    cart = await cart_service.update_item(db_session, user_id=user.id, item_id=item_id, quantity=5)
    assert cart.items[0].quantity == 5

    with pytest.raises(HTTPException) as exc_info:
        await cart_service.update_item(db_session, user_id=user.id, item_id=item_id + 99, quantity=1)
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Cart item not found"

    cart = await cart_service.remove_item(db_session, user_id=user.id, item_id=item_id)
    assert cart.items == []


async def test_totals_with_coupon(db_session, make_user, make_product, make_coupon):
    user = await make_user()
    product = await make_product(price=1000)
    await make_coupon("TEN", value=10)

    await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=2)
    cart = await cart_service.apply_coupon(db_session, user_id=user.id, code="ten")

    totals = cart_service.calculate_totals(cart)
    assert totals == {
        "totalItems": 2,
        "subtotal": 2000,
        "discountAmount": 200,
        "finalAmount": 1800,
        "totalAmount": 1800,
    }
    data = cart_service.serialize_cart(cart)
    assert data["appliedCoupon"]["code"] == "TEN"
    assert data["appliedCoupon"]["discount"] == 200
    assert data["formattedTotal"] == "₹1,800"


async def test_final_amount_never_negative(db_session, make_user, make_product, make_coupon):
    user = await make_user()
    product = await make_product(price=100)
    await make_coupon("BIG", type="fixed", value=500)

    await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    cart = await cart_service.apply_coupon(db_session, user_id=user.id, code="BIG")
    assert cart_service.calculate_totals(cart)["finalAmount"] == 0


async def test_apply_coupon_to_empty_cart(db_session, make_user, make_coupon):
    user = await make_user()
    await make_coupon("TEN")
    with pytest.raises(HTTPException) as exc_info:
        await cart_service.apply_coupon(db_session, user_id=user.id, code="TEN")
    assert exc_info.value.detail == "Cart is empty"


async def test_apply_unknown_coupon(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product()
    await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    with pytest.raises(HTTPException) as exc_info:
        await cart_service.apply_coupon(db_session, user_id=user.id, code="NOPE")
    assert exc_info.value.detail == COUPON_INVALID_MESSAGE


async def test_apply_exhausted_coupon_used_by_user(db_session, make_user, make_product, make_coupon):
    user = await make_user()
    product = await make_product()
    coupon = await make_coupon("ONCE", usage_limit=1)
    await coupon_service.record_redemption(db_session, coupon=coupon, user_id=user.id)

    await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    with pytest.raises(HTTPException) as exc_info:
        await cart_service.apply_coupon(db_session, user_id=user.id, code="ONCE")
    assert exc_info.value.detail == COUPON_EXHAUSTED_FOR_USER_MESSAGE


async def test_clear_and_remove_coupon(db_session, make_user, make_product, make_coupon):
    user = await make_user()
    product = await make_product()
    await make_coupon("TEN")
    await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=1)
    cart = await cart_service.apply_coupon(db_session, user_id=user.id, code="TEN")

    cart = await cart_service.remove_coupon(db_session, user_id=user.id)
    assert cart.applied_coupon is None

    await cart_service.apply_coupon(db_session, user_id=user.id, code="TEN")
    cart = await cart_service.clear_cart(db_session, cart=cart)
    assert cart.items == []
    assert cart.applied_coupon is None
    assert cart_service.serialize_cart(cart)["appliedCoupon"] is None


async def test_summary(db_session, make_user, make_product):
    user = await make_user()
    product = await make_product("Boti", price=800, discounted_price=650)
    cart = await cart_service.add_item(db_session, user_id=user.id, product_id=product.id, quantity=2)
    summary = cart_service.summarize_cart(cart)
    assert summary["itemCount"] == 2
    assert summary["totalAmount"] == 1300
    assert summary["items"][0]["name"] == "Boti"
