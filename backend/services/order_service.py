"""
Order service — placement, customer history, cancellation and the admin
operations (status changes, courier assignment, statistics).

Pricing:
    subtotal = sum(unit price * quantity), unit price = discounted or list
    discount = applied cart coupon on the subtotal (whole rupees)
    tax      = round(subtotal * TAX_RATE)
    total    = max(0, subtotal - discount + delivery_fee + tax)

Side effects after placement (coupon redemption, cart reset, customer and
admin notifications) never undo a successfully created order.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Address, Order, OrderItem, OrderStatusEvent, Product, User
from domain.constants import DEFAULT_COUNTRY, DEFAULT_ETA
from domain.enums import OrderStatus, PaymentMethod, PaymentStatus, Role
from domain.errors import DomainError, NotFoundError, PermissionDeniedError, ValidationError
from services import (
    cart_service,
    coupon_service,
    notification_service,
    push_service,
)
from utils.validators import format_price, generate_order_number, resolve_image_url

logger = logging.getLogger(__name__)

NON_CANCELLABLE = (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value)


# ── Serialization ───────────────────────────────────────────────────

def _person(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "fullName": user.full_name,
        "email": user.email,
        "phone": user.phone,
    }


def serialize_order(order: Order) -> dict:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "customer": _person(order.customer),
        "assignedTo": _person(order.assigned_to),
        "items": [
            {
                "id": item.id,
                "product": item.product_id,
                "quantity": item.quantity,
                "priceAtTime": item.price_at_time,
                "name": item.name,
                "image": resolve_image_url(item.image),
            }
            for item in order.items
        ],
        "deliveryAddress": {
            "street": order.delivery_street,
            "city": order.delivery_city,
            "state": order.delivery_state,
            "zipCode": order.delivery_zip_code,
            "country": order.delivery_country,
            "landmark": order.delivery_landmark,
            "coordinates": {
                "latitude": order.delivery_latitude,
                "longitude": order.delivery_longitude,
            },
        },
        "contactInfo": {"phone": order.contact_phone, "email": order.contact_email},
        "pricing": {
            "subtotal": order.subtotal,
            "deliveryFee": order.delivery_fee,
            "tax": order.tax,
            "discount": order.discount,
            "total": order.total,
        },
        "paymentInfo": {
            "method": order.payment_method,
            "status": order.payment_status,
            "transactionId": order.transaction_id,
        },
        "status": order.status,
        "statusHistory": [
            {
                "status": e.status,
                "timestamp": e.timestamp.isoformat() if e.timestamp else None,
                "notes": e.notes,
            }
            for e in order.status_history
        ],
        "appliedCoupon": order.applied_coupon_id,
        "specialInstructions": order.special_instructions,
        "isActive": order.is_active,
        "formattedTotal": format_price(order.total),
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "updatedAt": order.updated_at.isoformat() if order.updated_at else None,
    }


# ── Helpers ─────────────────────────────────────────────────────────

def compute_tax(subtotal: float) -> int:
    value = Decimal(str(subtotal)) * Decimal(str(settings.tax_rate))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_total(subtotal: float, discount: float, delivery_fee: float, tax: float) -> float:
    return max(0, subtotal - discount + delivery_fee + tax)


def add_history(order: Order, status: str, notes: str | None) -> OrderStatusEvent:
    event = OrderStatusEvent(status=status, notes=notes, timestamp=datetime.utcnow())
    order.status_history.append(event)
    return event


async def _unique_order_number(db: AsyncSession) -> str:
    for _ in range(5):
        number = generate_order_number()
        res = await db.execute(select(Order.id).where(Order.order_number == number))
        if res.scalar_one_or_none() is None:
            return number
    raise ValidationError("Could not allocate an order number, please retry")


async def _resolve_address(
    db: AsyncSession, *, user_id: int, saved_address_id: int | None, delivery_address: dict | None
) -> dict:
    if delivery_address:
        coords = delivery_address.get("coordinates") or {}
        return {
            "street": delivery_address["street"],
            "city": delivery_address["city"],
            "state": delivery_address["state"],
            "zip_code": delivery_address["zip_code"],
            "country": delivery_address.get("country") or DEFAULT_COUNTRY,
            "landmark": delivery_address.get("landmark"),
            "latitude": coords.get("latitude"),
            "longitude": coords.get("longitude"),
        }
    if saved_address_id:
        res = await db.execute(
            select(Address).where(
                Address.id == saved_address_id,
                Address.user_id == user_id,
            )
        )
        saved = res.scalar_one_or_none()
        if not saved:
            raise DomainError("Address not found. Please select a valid delivery address.", status_code=404)
        return {
            "street": saved.street,
            "city": saved.city,
            "state": saved.state,
            "zip_code": saved.zip_code,
            "country": saved.country or DEFAULT_COUNTRY,
            "landmark": saved.landmark,
            "latitude": saved.latitude,
            "longitude": saved.longitude,
        }
    raise ValidationError("Please provide a delivery address")


# ── Customer operations ─────────────────────────────────────────────

async def create_order(
    db: AsyncSession,
    *,
    customer: User,
    items: list[dict],
    saved_address_id: int | None = None,
    delivery_address: dict | None = None,
    contact_info: dict | None = None,
    payment_method: str = PaymentMethod.CASH_ON_DELIVERY.value,
    special_instructions: str | None = None,
) -> Order:
    """
    items: [{product_id:int, quantity:int}]

    Unknown or inactive products are skipped; at least one must remain.
    """
    if not items:
        raise ValidationError("Please provide order items")

    product_ids = [i["product_id"] for i in items]
    res = await db.execute(
        select(Product).where(Product.id.in_(product_ids), Product.is_active == True)  # noqa: E712
    )
    products = {p.id: p for p in res.scalars().all()}

    order_items: list[OrderItem] = []
    subtotal = 0.0
    for item in items:
        product = products.get(item["product_id"])
        if product is None:
            logger.info(f"Skipping unavailable product {item['product_id']} in order")
            continue
        price = product.selling_price
        subtotal += price * item["quantity"]
        order_items.append(
            OrderItem(
                product_id=product.id,
                quantity=item["quantity"],
                price_at_time=price,
                name=product.name,
                image=product.image,
            )
        )
    if not order_items:
        raise ValidationError("No valid products found in order")

    address = await _resolve_address(
        db, user_id=customer.id, saved_address_id=saved_address_id, delivery_address=delivery_address
    )

    cart = await cart_service.get_or_create_cart(db, user_id=customer.id)
    coupon = cart.applied_coupon
    discount = coupon_service.calculate_discount(coupon, subtotal) if coupon else 0
    delivery_fee = settings.delivery_fee
    tax = compute_tax(subtotal)
    total = compute_total(subtotal, discount, delivery_fee, tax)

    contact = contact_info or {}
    order = Order(
        order_number=await _unique_order_number(db),
        customer_id=customer.id,
        customer=customer,
        applied_coupon_id=coupon.id if coupon else None,
        delivery_street=address["street"],
        delivery_city=address["city"],
        delivery_state=address["state"],
        delivery_zip_code=address["zip_code"],
        delivery_country=address["country"],
        delivery_landmark=address["landmark"],
        delivery_latitude=address["latitude"],
        delivery_longitude=address["longitude"],
        contact_phone=contact.get("phone") or customer.phone,
        contact_email=contact.get("email") or customer.email,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        discount=discount,
        total=total,
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING.value,
        status=OrderStatus.PENDING.value,
        special_instructions=special_instructions,
        is_active=True,
        items=order_items,
        status_history=[],
        assigned_to=None,
    )
    add_history(order, OrderStatus.PENDING.value, "Order created")
    db.add(order)
    await db.flush()

    if coupon:
        await coupon_service.record_redemption(db, coupon=coupon, user_id=customer.id)
    await cart_service.clear_cart(db, cart=cart)

    logger.info(f"Order {order.order_number} placed by user {customer.id} (total={total})")

    await notification_service.notify_order_event(
        db,
        order=order,
        title="Order Placed Successfully! 🎉",
        message=f"Your order #{order.order_number} has been placed. We'll notify you when it's confirmed.",
    )
    await notification_service.notify_admins(
        db,
        title="New Order Received! 🛒",
        body=f"Order #{order.order_number} from {customer.full_name} · {format_price(total)}",
        data={"orderId": str(order.id), "orderNumber": order.order_number, "type": "new-order"},
    )
    return order


async def list_customer_orders(
    db: AsyncSession, *, customer_id: int, limit: int = 10, offset: int = 0
) -> tuple[list[Order], int]:
    clauses = [Order.customer_id == customer_id]
    total = (await db.execute(select(func.count(Order.id)).where(*clauses))).scalar() or 0
    res = await db.execute(
        select(Order)
        .where(*clauses)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total


async def get_order(db: AsyncSession, *, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order")
    return order


async def get_order_for(db: AsyncSession, *, order_id: int, user: User) -> Order:
    """The order's customer or an admin."""
    order = await get_order(db, order_id=order_id)
    if order.customer_id != user.id and user.role != Role.ADMIN.value:
        raise PermissionDeniedError("Not authorized to view this order")
    return order


async def cancel_order(db: AsyncSession, *, order_id: int, user: User, reason: str | None = None) -> Order:
    order = await get_order(db, order_id=order_id)
    if order.customer_id != user.id:
        raise PermissionDeniedError("Not authorized")
    if order.status in NON_CANCELLABLE:
        raise ValidationError(f"Cannot cancel order with status: {order.status}")

    order.status = OrderStatus.CANCELLED.value
    add_history(order, OrderStatus.CANCELLED.value, reason or "Cancelled by customer")
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Order {order.order_number} cancelled by customer {user.id}")
    return order


# ── Admin operations ────────────────────────────────────────────────

async def list_all_orders(db: AsyncSession, *, status: str | None = None) -> list[Order]:
    stmt = select(Order)
    if status:
        stmt = stmt.where(Order.status == status)
    res = await db.execute(stmt.order_by(Order.created_at.desc(), Order.id.desc()))
    return res.scalars().all()


async def update_status(db: AsyncSession, *, order_id: int, status: str, notes: str | None = None) -> Order:
    order = await get_order(db, order_id=order_id)
    old_status = order.status

    order.status = status
    add_history(order, status, notes or f"Status updated to {status}")
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Order {order.order_number}: {old_status} -> {status}")

    if old_status != status:
        await notification_service.notify_order_status(db, order=order, status=status, notes=notes)
    return order


async def assign_courier(
    db: AsyncSession,
    *,
    order_id: int,
    courier_id: int,
    estimated_time: str | None = None,
    notes: str | None = None,
) -> Order:
    order = await get_order(db, order_id=order_id)
    courier = await db.get(User, courier_id)
    if not courier or courier.role != Role.DELIVERY.value:
        raise NotFoundError("Delivery agent")

    eta = estimated_time or DEFAULT_ETA
    order.assigned_to_id = courier.id
    order.assigned_to = courier
    order.status = OrderStatus.OUT_FOR_DELIVERY.value
    add_history(order, order.status, notes or f"Assigned to {courier.full_name}. ETA: {eta}")
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Order {order.order_number} assigned to courier {courier.id}")

    eta_text = f" Estimated delivery time: {estimated_time}." if estimated_time else ""
    await notification_service.notify_order_event(
        db,
        order=order,
        title="Order Out for Delivery! 🚚",
        message=(
            f"Your order #{order.order_number} is on the way! "
            f"Delivery agent: {courier.full_name} ({courier.phone}).{eta_text}"
        ),
        status=order.status,
        deliveryAgent={"name": courier.full_name, "phone": courier.phone},
    )
    try:
        await push_service.send_push_notification(
            db,
            courier,
            "New Delivery Assigned 📦",
            f"Order #{order.order_number} has been assigned to you.",
            {"orderId": str(order.id), "orderNumber": order.order_number, "type": "assignment"},
        )
    except Exception as e:
        logger.warning(f"Courier push for {order.order_number} failed (non-fatal): {e}")
    return order


async def order_stats(db: AsyncSession) -> dict:
    total_orders = (await db.execute(select(func.count(Order.id)))).scalar() or 0
    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Order.total), 0)).where(Order.status == OrderStatus.DELIVERED.value)
        )
    ).scalar() or 0
    rows = await db.execute(
        select(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
        .group_by(Order.status)
        .order_by(Order.status)
    )
    return {
        "totalOrders": total_orders,
        "totalRevenue": revenue,
        "statusBreakdown": [
            {"status": status, "count": count, "totalRevenue": amount}
            for status, count, amount in rows.all()
        ],
    }


async def count_orders(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(Order.id)))).scalar() or 0


async def delivered_revenue(db: AsyncSession) -> float:
    res = await db.execute(
        select(func.coalesce(func.sum(Order.total), 0)).where(Order.status == OrderStatus.DELIVERED.value)
    )
    return res.scalar() or 0
