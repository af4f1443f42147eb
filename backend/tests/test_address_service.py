"""
Tests for saved delivery addresses and the single-default rule.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from fastapi import HTTPException

from services import address_service


pytestmark = pytest.mark.integration


async def _add(db_session, user, label="Home", is_default=False, city="Hyderabad"):
    return await address_service.create_address(
        db_session,
        user_id=user.id,
        label=label,
        street="12 MG Road",
        city=city,
        state="Telangana",
        zip_code="500001",
        is_default=is_default,
    )


async def test_defaults_applied(db_session, make_user):
    user = await make_user()
    address = await _add(db_session, user)
    assert address.country == "India"
    assert address.landmark == ""
    data = address_service.serialize_address(address)
    assert data["zipCode"] == "500001"
    assert data["coordinates"] == {"latitude": None, "longitude": None}


async def test_single_default_per_user(db_session, make_user):
    user = await make_user()
    first = await _add(db_session, user, "Home", is_default=True)
    second = await _add(db_session, user, "Work", is_default=True)
    await db_session.commit()

    addresses = await address_service.list_addresses(db_session, user_id=user.id)
    assert [a.id for a in addresses if a.is_default] == [second.id]
    assert addresses[0].id == second.id

    await address_service.set_default(db_session, address_id=first.id, user_id=user.id)
    default = await address_service.get_default(db_session, user_id=user.id)
    assert default.id == first.id
    assert second.is_default is False


async def test_other_users_defaults_untouched(db_session, make_user):
    alice = await make_user()
    bob = await make_user()
    theirs = await _add(db_session, bob, is_default=True)
    await _add(db_session, alice, is_default=True)
    assert theirs.is_default is True


async def test_update_fields_and_default(db_session, make_user):
    user = await make_user()
    home = await _add(db_session, user, "Home", is_default=True)
    work = await _add(db_session, user, "Work")

    work = await address_service.update_address(
        db_session,
        address_id=work.id,
        user_id=user.id,
        changes={"city": "Pune", "coordinates": {"latitude": 18.5, "longitude": 73.8}, "is_default": True},
    )
    assert work.city == "Pune"
    assert work.latitude == 18.5
    assert work.is_default is True
    assert home.is_default is False


async def test_not_owner(db_session, make_user):
    owner = await make_user()
    other = await make_user()
    address = await _add(db_session, owner)
    with pytest.raises(HTTPException) as exc_info:
        await address_service.update_address(db_session, address_id=address.id, user_id=other.id, changes={})
    assert exc_info.value.status_code == 403

    with pytest.raises(HTTPException) as exc_info:
        await address_service.get_owned(db_session, address_id=9999, user_id=owner.id)
    assert exc_info.value.status_code == 404


async def test_delete_returns_remaining(db_session, make_user):
    user = await make_user()
    home = await _add(db_session, user, "Home")
    work = await _add(db_session, user, "Work")
    remaining = await address_service.delete_address(db_session, address_id=home.id, user_id=user.id)
    assert [a.id for a in remaining] == [work.id]
