"""
Address service — a user's saved delivery addresses.

Invariant: at most one default address per user. Saving an address as
default clears the flag on the user's other addresses.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Address
from domain.constants import DEFAULT_COUNTRY
from domain.errors import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

_EDITABLE = ("label", "street", "city", "state", "zip_code", "country", "landmark")


def serialize_address(a: Address) -> dict:
    return {
        "id": a.id,
        "user": a.user_id,
        "label": a.label,
        "street": a.street,
        "city": a.city,
        "state": a.state,
        "zipCode": a.zip_code,
        "country": a.country,
        "landmark": a.landmark,
        "coordinates": {"latitude": a.latitude, "longitude": a.longitude},
        "isDefault": a.is_default,
        "createdAt": a.created_at.isoformat() if a.created_at else None,
        "updatedAt": a.updated_at.isoformat() if a.updated_at else None,
    }


async def list_addresses(db: AsyncSession, *, user_id: int) -> list[Address]:
    """Default first, then newest."""
    res = await db.execute(
        select(Address)
        .where(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
    )
    return res.scalars().all()


async def get_default(db: AsyncSession, *, user_id: int) -> Address | None:
    res = await db.execute(
        select(Address).where(Address.user_id == user_id, Address.is_default == True)  # noqa: E712
    )
    return res.scalars().first()


async def get_owned(db: AsyncSession, *, address_id: int, user_id: int) -> Address:
    address = await db.get(Address, address_id)
    if not address:
        raise NotFoundError("Address")
    if address.user_id != user_id:
        raise PermissionDeniedError("Not authorized to access this address")
    return address


async def _clear_defaults(db: AsyncSession, user_id: int, keep_id: int | None = None) -> None:
    stmt = update(Address).where(Address.user_id == user_id, Address.is_default == True)  # noqa: E712
    if keep_id is not None:
        stmt = stmt.where(Address.id != keep_id)
    await db.execute(stmt.values(is_default=False).execution_options(synchronize_session="fetch"))


async def create_address(
    db: AsyncSession,
    *,
    user_id: int,
    label: str,
    street: str,
    city: str,
    state: str,
    zip_code: str,
    country: str | None = None,
    landmark: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    is_default: bool = False,
) -> Address:
    if is_default:
        await _clear_defaults(db, user_id)

    address = Address(
        user_id=user_id,
        label=label,
        street=street,
        city=city,
        state=state,
        zip_code=zip_code,
        country=country or DEFAULT_COUNTRY,
        landmark=landmark or "",
        latitude=latitude,
        longitude=longitude,
        is_default=is_default,
    )
    db.add(address)
    await db.flush()
    return address


async def update_address(db: AsyncSession, *, address_id: int, user_id: int, changes: dict) -> Address:
    address = await get_owned(db, address_id=address_id, user_id=user_id)

    for field in _EDITABLE:
        if changes.get(field) is not None:
            setattr(address, field, changes[field])
    coordinates = changes.get("coordinates")
    if coordinates:
        address.latitude = coordinates.get("latitude")
        address.longitude = coordinates.get("longitude")

    if changes.get("is_default") is True:
        await _clear_defaults(db, user_id, keep_id=address.id)
        address.is_default = True
    elif changes.get("is_default") is False:
        address.is_default = False

    address.updated_at = datetime.utcnow()
    await db.flush()
    return address


async def delete_address(db: AsyncSession, *, address_id: int, user_id: int) -> list[Address]:
    """Delete and return the user's remaining addresses."""
    address = await get_owned(db, address_id=address_id, user_id=user_id)
    await db.delete(address)
    await db.flush()
    return await list_addresses(db, user_id=user_id)


async def set_default(db: AsyncSession, *, address_id: int, user_id: int) -> Address:
    address = await get_owned(db, address_id=address_id, user_id=user_id)
    await _clear_defaults(db, user_id, keep_id=address.id)
    address.is_default = True
    address.updated_at = datetime.utcnow()
    await db.flush()
    return address
