"""
Delivery service — the courier console.

Couriers pick confirmed/preparing orders from the unassigned pool. The
claim is a single conditional UPDATE (assigned_to_id IS NULL and status
still pickable), so of two couriers racing for the same order exactly one
sees rowcount == 1.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order, User
from domain.constants import COURIER_ACTIVE_STATUSES, DELIVERED_HISTORY_LIMIT, PICKUP_STATUSES
from domain.enums import OrderStatus
from domain.errors import DomainError, ValidationError
from services import notification_service
from services.order_service import add_history

logger = logging.getLogger(__name__)


def _not_assigned() -> DomainError:
    return DomainError("Order not found or not assigned to you", status_code=404)


async def _reload(db: AsyncSession, order_id: int) -> Order | None:
    res = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def list_available(db: AsyncSession) -> list[Order]:
    res = await db.execute(
        select(Order)
        .where(Order.status.in_(PICKUP_STATUSES), Order.assigned_to_id.is_(None))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return res.scalars().all()


async def list_my_orders(db: AsyncSession, *, courier_id: int) -> tuple[list[Order], dict]:
    """Active assignments plus {"delivered": n}."""
    res = await db.execute(
        select(Order)
        .where(Order.assigned_to_id == courier_id, Order.status.in_(COURIER_ACTIVE_STATUSES))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    delivered = (
        await db.execute(
            select(func.count(Order.id)).where(
                Order.assigned_to_id == courier_id,
                Order.status == OrderStatus.DELIVERED.value,
            )
        )
    ).scalar() or 0
    return res.scalars().all(), {"delivered": delivered}


async def list_delivered(db: AsyncSession, *, courier_id: int) -> list[Order]:
    res = await db.execute(
        select(Order)
        .where(Order.assigned_to_id == courier_id, Order.status == OrderStatus.DELIVERED.value)
        .order_by(Order.updated_at.desc(), Order.id.desc())
        .limit(DELIVERED_HISTORY_LIMIT)
    )
    return res.scalars().all()


async def get_assigned(db: AsyncSession, *, order_id: int, courier_id: int) -> Order:
    order = await db.get(Order, order_id)
    if not order or order.assigned_to_id != courier_id:
        raise _not_assigned()
    return order


async def accept_order(db: AsyncSession, *, order_id: int, courier: User) -> tuple[Order, bool]:
    """
    Claim an order from the pool.

    Returns:
        (order, already_mine); already_mine is True when the courier
        already holds this order and it is still waiting for pickup

    Raises:
        DomainError(404) when the order does not exist
        ValidationError(400) when it is not pickable or taken by someone else
    """
    order = await db.get(Order, order_id)
    if not order:
        raise DomainError("Order not found", status_code=404)
    if order.status not in PICKUP_STATUSES:
        raise ValidationError(
            f'Order is not available for delivery. Current status: "{order.status}". '
            "Status must be 'preparing' or 'confirmed'."
        )
    if order.assigned_to_id == courier.id:
        return order, True
    if order.assigned_to_id is not None:
        raise ValidationError("Order is already assigned to another delivery agent")

    now = datetime.utcnow()
    res = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.assigned_to_id.is_(None),
            Order.status.in_(PICKUP_STATUSES),
        )
        .values(
            assigned_to_id=courier.id,
            status=OrderStatus.OUT_FOR_DELIVERY.value,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        logger.info(f"Courier {courier.id} lost the race for order {order_id}")
        raise ValidationError("Order is already assigned to another delivery agent")

    order = await _reload(db, order_id)
    add_history(order, OrderStatus.OUT_FOR_DELIVERY.value, f"Accepted by delivery agent: {courier.full_name}")
    await db.flush()
    logger.info(f"Order {order.order_number} accepted by courier {courier.id}")

    await notification_service.notify_order_event(
        db,
        order=order,
        title="Order Out for Delivery! 🚚",
        message=(
            f"Your order #{order.order_number} is on the way! "
            f"Delivery agent: {courier.full_name} ({courier.phone})"
        ),
        status=order.status,
        deliveryAgent={"name": courier.full_name, "phone": courier.phone},
    )
    return order, False


async def mark_delivered(db: AsyncSession, *, order_id: int, courier: User, status: str) -> Order:
    order = await get_assigned(db, order_id=order_id, courier_id=courier.id)
    if status != OrderStatus.DELIVERED.value:
        raise ValidationError("You can only mark orders as delivered")
    if order.status != OrderStatus.OUT_FOR_DELIVERY.value:
        raise ValidationError("Order must be out for delivery before marking as delivered")

    order.status = OrderStatus.DELIVERED.value
    add_history(order, order.status, "Order delivered by delivery agent")
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Order {order.order_number} delivered by courier {courier.id}")

    await notification_service.notify_order_event(
        db,
        order=order,
        title="Order Delivered! ✅",
        message=(
            f"Your order #{order.order_number} has been delivered successfully. "
            "Thank you for your order!"
        ),
        status=order.status,
    )
    return order
