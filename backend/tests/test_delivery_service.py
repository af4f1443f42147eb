"""
Tests for the courier console: the pickup pool, claiming and delivery.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from fastapi import HTTPException
from sqlalchemy import select, update

from db_models import Notification, Order
from services import delivery_service, order_service


pytestmark = pytest.mark.integration


@pytest.fixture
def make_order(db_session, make_user, make_product, delivery_address):
    async def _make(status: str = "confirmed", customer=None):
        customer = customer or await make_user()
        product = await make_product()
        order = await order_service.create_order(
            db_session,
            customer=customer,
            items=[{"product_id": product.id, "quantity": 1}],
            delivery_address=delivery_address,
        )
        order.status = status
        await db_session.commit()
        return order

    return _make


@pytest.fixture
def make_courier(make_user):
    async def _make(first_name: str = "Ravi"):
        return await make_user("delivery", first_name=first_name, last_name="Kumar")

    return _make


class TestPool:

    async def test_only_unassigned_pickable_orders(self, db_session, make_order, make_courier):
        courier = await make_courier()
        pending = await make_order("pending")
        confirmed = await make_order("confirmed")
        preparing = await make_order("preparing")
        taken = await make_order("preparing")
        taken.assigned_to_id = courier.id
        await db_session.commit()

        available = await delivery_service.list_available(db_session)
        ids = [o.id for o in available]
        assert ids == [preparing.id, confirmed.id]
        assert pending.id not in ids


class TestAccept:

    async def test_accept_claims_order(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("confirmed")

        order, already_mine = await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)
        await db_session.commit()

        assert already_mine is False
        assert order.assigned_to_id == courier.id
        assert order.status == "out-for-delivery"
        assert order.status_history[-1].notes == "Accepted by delivery agent: Ravi Kumar"

        res = await db_session.execute(
            select(Notification).where(Notification.user_id == order.customer_id).order_by(Notification.id)
        )
        last = res.scalars().all()[-1]
        assert last.title == "Order Out for Delivery! 🚚"
        assert last.extra["deliveryAgent"]["name"] == "Ravi Kumar"

    async def test_repeat_accept_on_assigned_pickable_order(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("preparing")
        order.assigned_to_id = courier.id
        await db_session.commit()
        history_len = len(order.status_history)

        again, already_mine = await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)
        assert already_mine is True
        assert again.id == order.id
        assert again.status == "preparing"
        assert len(again.status_history) == history_len

    async def test_repeat_accept_once_out_for_delivery(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("confirmed")
        await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)
        assert exc_info.value.status_code == 400
        assert 'Current status: "out-for-delivery"' in exc_info.value.detail

    async def test_second_courier_rejected(self, db_session, make_order, make_courier):
        first = await make_courier("Ravi")
        second = await make_courier("Anil")
        order = await make_order("preparing")
        order.assigned_to_id = first.id
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.accept_order(db_session, order_id=order.id, courier=second)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Order is already assigned to another delivery agent"

    async def test_second_courier_after_pickup_sees_status(self, db_session, make_order, make_courier):
        first = await make_courier("Ravi")
        second = await make_courier("Anil")
        order = await make_order("confirmed")
        await delivery_service.accept_order(db_session, order_id=order.id, courier=first)

        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.accept_order(db_session, order_id=order.id, courier=second)
        assert exc_info.value.status_code == 400
        assert "not available for delivery" in exc_info.value.detail

    async def test_conditional_update_guards_stale_reads(self, db_session, make_order, make_courier):
        first = await make_courier("Ravi")
        second = await make_courier("Anil")
        order = await make_order("confirmed")

        # another worker claims the row behind this session's back
        await db_session.execute(
            update(Order)
            .where(Order.id == order.id)
            .values(assigned_to_id=first.id, status="out-for-delivery")
            .execution_options(synchronize_session=False)
        )
        assert order.assigned_to_id is None

        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.accept_order(db_session, order_id=order.id, courier=second)
        assert exc_info.value.detail == "Order is already assigned to another delivery agent"

    @pytest.mark.parametrize("status", ["pending", "delivered", "cancelled"])
    async def test_not_pickable(self, db_session, make_order, make_courier, status):
        courier = await make_courier()
        order = await make_order(status)
        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)
        assert exc_info.value.status_code == 400
        assert status in exc_info.value.detail

    async def test_missing_order(self, db_session, make_courier):
        courier = await make_courier()
        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.accept_order(db_session, order_id=9999, courier=courier)
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Order not found"


class TestDeliver:

    async def test_mark_delivered(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("confirmed")
        await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)

        order = await delivery_service.mark_delivered(
            db_session, order_id=order.id, courier=courier, status="delivered"
        )
        await db_session.commit()
        assert order.status == "delivered"
        assert order.payment_status == "pending"
        assert order.status_history[-1].notes == "Order delivered by delivery agent"

        active, stats = await delivery_service.list_my_orders(db_session, courier_id=courier.id)
        assert active == []
        assert stats == {"delivered": 1}
        delivered = await delivery_service.list_delivered(db_session, courier_id=courier.id)
        assert [o.id for o in delivered] == [order.id]

    async def test_only_delivered_status_allowed(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("confirmed")
        await delivery_service.accept_order(db_session, order_id=order.id, courier=courier)
        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.mark_delivered(
                db_session, order_id=order.id, courier=courier, status="cancelled"
            )
        assert exc_info.value.detail == "You can only mark orders as delivered"

    async def test_must_be_out_for_delivery(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("preparing")
        order.assigned_to_id = courier.id
        await db_session.commit()
        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.mark_delivered(
                db_session, order_id=order.id, courier=courier, status="delivered"
            )
        assert exc_info.value.detail == "Order must be out for delivery before marking as delivered"

    async def test_other_couriers_order_hidden(self, db_session, make_order, make_courier):
        owner = await make_courier("Ravi")
        other = await make_courier("Anil")
        order = await make_order("confirmed")
        await delivery_service.accept_order(db_session, order_id=order.id, courier=owner)

        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.get_assigned(db_session, order_id=order.id, courier_id=other.id)
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Order not found or not assigned to you"

    async def test_active_list_includes_assigned_preparing(self, db_session, make_order, make_courier):
        courier = await make_courier()
        order = await make_order("preparing")
        order.assigned_to_id = courier.id
        await db_session.commit()
        active, stats = await delivery_service.list_my_orders(db_session, courier_id=courier.id)
        assert [o.id for o in active] == [order.id]
        assert stats == {"delivered": 0}

    async def test_other_couriers_order_not_found_before_status_check(self, db_session, make_order, make_courier):
        owner = await make_courier("Ravi")
        other = await make_courier("Anil")
        order = await make_order("confirmed")
        await delivery_service.accept_order(db_session, order_id=order.id, courier=owner)

        with pytest.raises(HTTPException) as exc_info:
            await delivery_service.mark_delivered(
                db_session, order_id=order.id, courier=other, status="cancelled"
            )
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Order not found or not assigned to you"
