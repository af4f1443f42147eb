"""
Notification service — in-app inbox plus push fan-out.

notify_user() always persists the Notification row first, then attempts a
push via push_service. Push problems are logged and swallowed so callers
(order placement, status changes) never fail because a device is offline.
"""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Notification, Order, User
from domain.constants import DEFAULT_NOTIFICATION_PREFERENCES
from domain.enums import NotificationPriority, NotificationType, OrderStatus, Role
from domain.errors import NotFoundError
from services import push_service

logger = logging.getLogger(__name__)


# ── Preferences ─────────────────────────────────────────────────────

def get_preferences(user: User) -> dict:
    return {**DEFAULT_NOTIFICATION_PREFERENCES, **(user.notification_preferences or {})}


async def update_preferences(db: AsyncSession, *, user: User, changes: dict) -> dict:
    prefs = get_preferences(user)
    prefs.update({k: bool(v) for k, v in changes.items() if k in DEFAULT_NOTIFICATION_PREFERENCES and v is not None})
    # Reassign so SQLAlchemy sees the JSON column change
    user.notification_preferences = prefs
    await db.flush()
    return prefs


# ── Sending ─────────────────────────────────────────────────────────

async def _push_quietly(db: AsyncSession, user: User, title: str, body: str, data: dict) -> dict | None:
    if not get_preferences(user).get("push", True):
        return None
    try:
        return await push_service.send_push_notification(db, user, title, body, data)
    except Exception as e:
        logger.warning(f"Push to user {user.id} failed (non-fatal): {e}")
        return None


async def notify_user(
    db: AsyncSession,
    *,
    user: User,
    title: str,
    message: str,
    type: str = NotificationType.SYSTEM.value,
    category: str | None = None,
    priority: str = NotificationPriority.MEDIUM.value,
    metadata: dict | None = None,
    push: bool = True,
) -> Notification:
    notification = Notification(
        user_id=user.id,
        title=title,
        message=message,
        type=type,
        category=category or type,
        priority=priority,
        extra=metadata or {},
        is_read=False,
        is_active=True,
    )
    db.add(notification)
    await db.flush()

    if push:
        data = {k: v for k, v in (metadata or {}).items() if isinstance(v, (str, int, float, bool))}
        data["notificationId"] = str(notification.id)
        data["type"] = type
        await _push_quietly(db, user, title, message, data)
    return notification


async def notify_admins(db: AsyncSession, *, title: str, body: str, data: dict | None = None) -> list[dict]:
    """Push-only broadcast to every active admin (new-order alerts)."""
    res = await db.execute(
        select(User).where(User.role == Role.ADMIN.value, User.is_active == True)  # noqa: E712
    )
    admins = res.scalars().all()
    if not admins:
        return []
    try:
        return await push_service.send_push_to_many(db, admins, title, body, data)
    except Exception as e:
        logger.warning(f"Admin push broadcast failed (non-fatal): {e}")
        return []


def order_status_message(status: str, order_number: str, notes: str | None = None) -> tuple[str, str, str]:
    """(title, message, priority) shown to the customer for a status change."""
    if status == OrderStatus.CONFIRMED.value:
        return (
            "Order Confirmed! ✅",
            f"Your order #{order_number} has been confirmed and is being prepared.",
            "high",
        )
    if status == OrderStatus.PREPARING.value:
        return (
            "Order Being Prepared 👨‍🍳",
            f"Your order #{order_number} is being prepared. It will be ready soon!",
            "high",
        )
    if status == OrderStatus.OUT_FOR_DELIVERY.value:
        return (
            "Order Out for Delivery! 🚚",
            f"Your order #{order_number} is on the way to you. Track it in your orders.",
            "high",
        )
    if status == OrderStatus.DELIVERED.value:
        return (
            "Order Delivered! 🎉",
            f"Your order #{order_number} has been delivered. Thank you for your order!",
            "high",
        )
    if status == OrderStatus.CANCELLED.value:
        reason = f" Reason: {notes}" if notes else ""
        return "Order Cancelled", f"Your order #{order_number} has been cancelled.{reason}", "high"
    return (
        "Order Status Updated",
        f"Your order #{order_number} status has been updated to {status}.",
        NotificationPriority.MEDIUM.value,
    )


def _order_metadata(order: Order, **extra) -> dict:
    return {
        "orderId": str(order.id),
        "orderNumber": order.order_number,
        "screen": "order-details",
        **extra,
    }


async def notify_order_event(
    db: AsyncSession,
    *,
    order: Order,
    title: str,
    message: str,
    priority: str = NotificationPriority.HIGH.value,
    **metadata,
) -> Notification | None:
    """Notify an order's customer; errors are logged, never raised."""
    customer = order.customer
    if customer is None:
        return None
    try:
        return await notify_user(
            db,
            user=customer,
            title=title,
            message=message,
            type=NotificationType.ORDER.value,
            category=NotificationType.ORDER.value,
            priority=priority,
            metadata=_order_metadata(order, **metadata),
        )
    except Exception as e:
        logger.error(f"Order notification for {order.order_number} failed: {e}", exc_info=True)
        return None


async def notify_order_status(db: AsyncSession, *, order: Order, status: str, notes: str | None = None):
    title, message, priority = order_status_message(status, order.order_number, notes)
    return await notify_order_event(
        db, order=order, title=title, message=message, priority=priority, status=status
    )


async def send_welcome(db: AsyncSession, *, user: User) -> Notification:
    return await notify_user(
        db,
        user=user,
        title="Welcome!",
        message="Thank you for joining Sejas Fresh Meat Delivery!",
        type=NotificationType.SYSTEM.value,
        priority=NotificationPriority.HIGH.value,
    )


# ── Inbox ───────────────────────────────────────────────────────────

def _inbox_filter(user_id: int, category: str | None, is_read: bool | None, type: str | None) -> list:
    clauses = [Notification.user_id == user_id, Notification.is_active == True]  # noqa: E712
    if category:
        clauses.append(Notification.category == category)
    if is_read is not None:
        clauses.append(Notification.is_read == is_read)
    if type:
        clauses.append(Notification.type == type)
    return clauses


async def list_notifications(
    db: AsyncSession,
    *,
    user_id: int,
    limit: int = 20,
    offset: int = 0,
    category: str | None = None,
    is_read: bool | None = None,
    type: str | None = None,
) -> tuple[list[Notification], int]:
    clauses = _inbox_filter(user_id, category, is_read, type)
    total = (await db.execute(select(func.count(Notification.id)).where(*clauses))).scalar() or 0
    res = await db.execute(
        select(Notification)
        .where(*clauses)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total


async def unread_count(db: AsyncSession, *, user_id: int) -> int:
    res = await db.execute(
        select(func.count(Notification.id)).where(*_inbox_filter(user_id, None, False, None))
    )
    return res.scalar() or 0


async def get_notification(db: AsyncSession, *, user_id: int, notification_id: int) -> Notification:
    """Another user's notification is reported as missing."""
    res = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
            Notification.is_active == True,  # noqa: E712
        )
    )
    notification = res.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification")
    return notification


async def mark_read(db: AsyncSession, *, user_id: int, notification_id: int) -> Notification:
    notification = await get_notification(db, user_id=user_id, notification_id=notification_id)
    notification.is_read = True
    await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, *, user_id: int) -> int:
    res = await db.execute(
        update(Notification)
        .where(*_inbox_filter(user_id, None, False, None))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


async def delete_notification(db: AsyncSession, *, user_id: int, notification_id: int) -> None:
    notification = await get_notification(db, user_id=user_id, notification_id=notification_id)
    await db.delete(notification)
    await db.flush()


async def clear_all(db: AsyncSession, *, user_id: int) -> int:
    res = await db.execute(
        delete(Notification)
        .where(Notification.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


def serialize_notification(n: Notification) -> dict:
    return {
        "id": n.id,
        "user": n.user_id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "category": n.category,
        "priority": n.priority,
        "isRead": n.is_read,
        "metadata": n.extra or {},
        "createdAt": n.created_at.isoformat() if n.created_at else None,
    }
