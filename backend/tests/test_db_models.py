"""
Tests for ORM database models.

Tests: Model creation, relationships, column constraints, defaults.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from datetime import datetime, timedelta
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError


class TestUserModel:
    """Tests for the User ORM model."""

    @pytest.mark.integration
    async def test_create_user_defaults(self, db_session):
        from db_models import User
        user = User(first_name="Asha", phone="+919812345678", addresses=[])
        db_session.add(user)
        await db_session.commit()

        result = await db_session.execute(select(User).where(User.phone == "+919812345678"))
        fetched = result.scalar_one()
        assert fetched.role == "customer"
        assert fetched.is_active is True
        assert fetched.phone_verified is False
        assert fetched.created_at is not None

    @pytest.mark.integration
    async def test_phone_unique(self, db_session):
        from db_models import User
        db_session.add(User(first_name="A", phone="+919800000001"))
        await db_session.commit()
        db_session.add(User(first_name="B", phone="+919800000001"))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    @pytest.mark.unit
    def test_full_name(self):
        from db_models import User
        assert User(first_name="Asha", last_name="Rao").full_name == "Asha Rao"
        assert User(first_name="Asha", last_name="").full_name == "Asha"

    @pytest.mark.integration
    async def test_addresses_relationship(self, db_session, make_user):
        from db_models import Address
        user = await make_user()
        db_session.add(Address(user_id=user.id, street="1", city="c", state="s", zip_code="5"))
        await db_session.commit()
        await db_session.refresh(user, ["addresses"])
        assert len(user.addresses) == 1
        assert user.addresses[0].label == "Home"
        assert user.addresses[0].country == "India"


class TestProductModel:

    @pytest.mark.unit
    def test_selling_price(self):
        from db_models import Product
        assert Product(price=1500, discounted_price=1200).selling_price == 1200
        assert Product(price=1500, discounted_price=None).selling_price == 1500

    @pytest.mark.integration
    async def test_defaults(self, db_session):
        from db_models import Product
        product = Product(name="Boti", description="d", price=800, category="normal")
        db_session.add(product)
        await db_session.commit()
        assert product.images == []
        assert product.tags == []
        assert product.weight_unit == "kg"
        assert product.delivery_time == "60-90 minutes"
        assert product.in_stock is True


class TestCouponModel:

    @pytest.mark.integration
    async def test_code_unique(self, db_session, make_coupon):
        await make_coupon("SAME")
        with pytest.raises(IntegrityError):
            await make_coupon("SAME")
        await db_session.rollback()

    @pytest.mark.integration
    async def test_redemption_once_per_user(self, db_session, make_coupon, make_user):
        from db_models import CouponRedemption
        coupon = await make_coupon()
        user = await make_user()
        db_session.add(CouponRedemption(coupon_id=coupon.id, user_id=user.id))
        await db_session.commit()
        db_session.add(CouponRedemption(coupon_id=coupon.id, user_id=user.id))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()


class TestOrderModel:

    @pytest.mark.integration
    async def test_items_and_history_cascade(self, db_session, make_user, make_product):
        from db_models import Order, OrderItem, OrderStatusEvent
        user = await make_user()
        product = await make_product()
        order = Order(
            order_number="ORD0000000001001",
            customer_id=user.id,
            subtotal=1500,
            total=1500,
            items=[OrderItem(product_id=product.id, quantity=1, price_at_time=1500, name=product.name)],
            status_history=[OrderStatusEvent(status="pending", notes="Order created",
                                             timestamp=datetime.utcnow() - timedelta(seconds=1))],
        )
        db_session.add(order)
        await db_session.commit()

        result = await db_session.execute(select(Order).where(Order.order_number == "ORD0000000001001"))
        fetched = result.scalar_one()
        assert fetched.status == "pending"
        assert fetched.payment_method == "cash-on-delivery"
        assert fetched.payment_status == "pending"
        assert fetched.customer.id == user.id
        assert fetched.assigned_to is None
        assert fetched.items[0].product.id == product.id

        await db_session.delete(fetched)
        await db_session.commit()
        remaining = await db_session.execute(select(OrderItem))
        assert remaining.scalars().all() == []
