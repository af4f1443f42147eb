"""
Courier console endpoints. Every route requires the delivery role.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import require_delivery
from domain.responses import success_response
from models import DeliveryStatusRequest
from services import delivery_service
from services.order_service import serialize_order

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/delivery", tags=["delivery"])


@router.get("/orders/available")
async def available_orders(
    _courier: User = Depends(require_delivery),
    db: AsyncSession = Depends(get_db),
):
    orders = await delivery_service.list_available(db)
    return success_response([serialize_order(o) for o in orders], meta={"count": len(orders)})


@router.get("/orders")
async def my_orders(courier: User = Depends(require_delivery), db: AsyncSession = Depends(get_db)):
    orders, stats = await delivery_service.list_my_orders(db, courier_id=courier.id)
    return {
        **success_response([serialize_order(o) for o in orders], meta={"count": len(orders)}),
        "stats": stats,
    }


@router.get("/orders/delivered")
async def delivered_orders(courier: User = Depends(require_delivery), db: AsyncSession = Depends(get_db)):
    orders = await delivery_service.list_delivered(db, courier_id=courier.id)
    return success_response([serialize_order(o) for o in orders], meta={"count": len(orders)})


@router.get("/orders/{order_id}")
async def get_order(
    order_id: int,
    courier: User = Depends(require_delivery),
    db: AsyncSession = Depends(get_db),
):
    order = await delivery_service.get_assigned(db, order_id=order_id, courier_id=courier.id)
    return success_response(serialize_order(order))


@router.post("/orders/{order_id}/accept")
async def accept_order(
    order_id: int,
    courier: User = Depends(require_delivery),
    db: AsyncSession = Depends(get_db),
):
    order, already_mine = await delivery_service.accept_order(db, order_id=order_id, courier=courier)
    if already_mine:
        return success_response(serialize_order(order), message="Order is already assigned to you")
    await db.commit()
    return success_response(
        serialize_order(order),
        message="Order accepted successfully. Status updated to out-for-delivery.",
    )


@router.patch("/orders/{order_id}/status")
async def update_delivery_status(
    order_id: int,
    request: DeliveryStatusRequest,
    courier: User = Depends(require_delivery),
    db: AsyncSession = Depends(get_db),
):
    order = await delivery_service.mark_delivered(
        db, order_id=order_id, courier=courier, status=request.status
    )
    await db.commit()
    return success_response(serialize_order(order), message="Order marked as delivered successfully")
