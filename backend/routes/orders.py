"""
Order endpoints.

Customers place, list, view and cancel their own orders. Admins update
status, assign couriers and read stats (mirrored under /admin/orders).
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user, page_params, require_admin
from domain.responses import paginated_response, success_response
from models import AssignOrderRequest, CancelOrderRequest, OrderCreateRequest, UpdateOrderStatusRequest
from services import order_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.create_order(
        db,
        customer=user,
        items=[{"product_id": i.product_id, "quantity": i.quantity} for i in request.items],
        saved_address_id=request.saved_address_id,
        delivery_address=request.delivery_address.model_dump() if request.delivery_address else None,
        contact_info=request.contact_info.model_dump() if request.contact_info else None,
        payment_method=request.payment_method.value,
        special_instructions=request.special_instructions,
    )
    await db.commit()
    return success_response(order_service.serialize_order(order), message="Order created successfully")


@router.get("")
async def my_orders(
    paging: dict = Depends(page_params(10)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_customer_orders(
        db, customer_id=user.id, limit=paging["limit"], offset=paging["offset"]
    )
    return paginated_response(
        [order_service.serialize_order(o) for o in orders],
        page=paging["page"],
        limit=paging["limit"],
        total=total,
    )


@router.get("/stats")
async def order_stats(_admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return success_response(await order_service.order_stats(db))


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order_for(db, order_id=order_id, user=user)
    return success_response(order_service.serialize_order(order))


@router.patch("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    request: CancelOrderRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.cancel_order(
        db, order_id=order_id, user=user, reason=request.reason if request else None
    )
    await db.commit()
    return success_response(order_service.serialize_order(order), message="Order cancelled successfully")


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    request: UpdateOrderStatusRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.update_status(
        db, order_id=order_id, status=request.status.value, notes=request.notes
    )
    await db.commit()
    return success_response(order_service.serialize_order(order), message="Order status updated successfully")


@router.patch("/{order_id}/assign")
async def assign_order(
    order_id: int,
    request: AssignOrderRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.assign_courier(
        db,
        order_id=order_id,
        courier_id=request.assigned_to,
        estimated_time=request.estimated_time,
        notes=request.notes,
    )
    await db.commit()
    return success_response(order_service.serialize_order(order), message="Order assigned successfully")
