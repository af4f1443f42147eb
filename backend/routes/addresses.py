"""
Saved delivery addresses for the signed-in user.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user
from domain.responses import success_response
from models import AddressCreateRequest, AddressUpdateRequest
from services import address_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/addresses", tags=["addresses"])


@router.get("")
async def list_addresses(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    addresses = await address_service.list_addresses(db, user_id=user.id)
    return success_response(
        [address_service.serialize_address(a) for a in addresses],
        meta={"count": len(addresses)},
    )


@router.get("/default")
async def default_address(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    address = await address_service.get_default(db, user_id=user.id)
    return success_response(address_service.serialize_address(address) if address else None)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_address(
    request: AddressCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    coords = request.coordinates
    address = await address_service.create_address(
        db,
        user_id=user.id,
        label=request.label.value,
        street=request.street,
        city=request.city,
        state=request.state,
        zip_code=request.zip_code,
        country=request.country,
        landmark=request.landmark,
        latitude=coords.latitude if coords else None,
        longitude=coords.longitude if coords else None,
        is_default=request.is_default,
    )
    await db.commit()
    return success_response(address_service.serialize_address(address), message="Address added successfully")


@router.put("/{address_id}")
async def update_address(
    address_id: int,
    request: AddressUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = request.model_dump(exclude_unset=True)
    if changes.get("label") is not None:
        changes["label"] = request.label.value
    address = await address_service.update_address(
        db, address_id=address_id, user_id=user.id, changes=changes
    )
    await db.commit()
    return success_response(address_service.serialize_address(address), message="Address updated successfully")


@router.delete("/{address_id}")
async def delete_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    remaining = await address_service.delete_address(db, address_id=address_id, user_id=user.id)
    await db.commit()
    return success_response(
        [address_service.serialize_address(a) for a in remaining],
        message="Address deleted successfully",
    )


@router.patch("/{address_id}/default")
async def set_default_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    address = await address_service.set_default(db, address_id=address_id, user_id=user.id)
    await db.commit()
    return success_response(address_service.serialize_address(address), message="Default address updated")
