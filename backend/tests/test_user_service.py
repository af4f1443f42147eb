"""
Tests for registration, the login flows, OTP and PIN management.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from config import settings
from db_models import User
from services import user_service


pytestmark = pytest.mark.integration


class TestRegistration:

    async def test_register_with_default_address(self, db_session, delivery_address):
        user = await user_service.register_customer(
            db_session,
            first_name=" Asha ",
            last_name="Rao",
            phone="+919812345678",
            email="Asha@Example.com",
            pin="1234",
            address=delivery_address,
        )
        await db_session.commit()

        assert user.first_name == "Asha"
        assert user.email == "asha@example.com"
        assert user.role == "customer"
        assert len(user.addresses) == 1
        assert user.addresses[0].is_default is True
        assert user.addresses[0].label == "Home"

        data = user_service.serialize_user(user, include_addresses=True)
        assert data["hasPin"] is True
        assert "pin_hash" not in data and "pinHash" not in data
        assert data["savedAddresses"][0]["city"] == "Hyderabad"

    async def test_duplicate_phone(self, db_session, make_user):
        await make_user(phone="+919812345678")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.register_customer(db_session, first_name="B", phone="+919812345678")
        assert exc_info.value.detail == "User already exists with this phone number"

    async def test_invalid_phone(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await user_service.register_customer(db_session, first_name="B", phone="0123")
        assert exc_info.value.status_code == 400

    async def test_bad_pin(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await user_service.register_customer(db_session, first_name="B", phone="+919811111111", pin="12")
        assert exc_info.value.detail == "PIN must be 4-6 digits"

    async def test_staff_needs_email_and_password(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await user_service.create_user(db_session, first_name="D", phone="+919822222222", role="delivery")
        assert exc_info.value.status_code == 400


class TestLogin:

    async def test_password_login_for_staff(self, db_session, make_user):
        admin = await make_user("admin", email="admin@sejas.com", password="admin123")
        user = await user_service.login_with_password(db_session, email="admin@sejas.com", password="admin123")
        assert user.id == admin.id

    async def test_password_login_refuses_customers(self, db_session, make_user):
        await make_user(email="cust@example.com", password="secret1")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.login_with_password(db_session, email="cust@example.com", password="secret1")
        assert exc_info.value.status_code == 403

    async def test_wrong_password(self, db_session, make_user):
        await make_user("admin", email="admin@sejas.com", password="admin123")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.login_with_password(db_session, email="admin@sejas.com", password="nope")
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid email or password"

    async def test_inactive_account(self, db_session, make_user):
        await make_user("delivery", email="d@sejas.com", password="secret1", is_active=False)
        with pytest.raises(HTTPException) as exc_info:
            await user_service.login_with_password(db_session, email="d@sejas.com", password="secret1")
        assert exc_info.value.detail == "Account is inactive"

    async def test_phone_login(self, db_session, make_user):
        user = await make_user(phone="+919833333333")
        assert (await user_service.login_with_phone(db_session, phone="+919833333333")).id == user.id
        with pytest.raises(HTTPException) as exc_info:
            await user_service.login_with_phone(db_session, phone="+919844444444")
        assert exc_info.value.detail == "User not found. Please sign up first."

    async def test_pin_login_by_phone_or_email(self, db_session, make_user):
        user = await make_user(phone="+919855555555", email="pin@example.com", pin="4321")
        by_phone = await user_service.login_with_pin(db_session, identifier="+919855555555", pin="4321")
        by_email = await user_service.login_with_pin(db_session, identifier="pin@example.com", pin="4321")
        assert by_phone.id == by_email.id == user.id

        with pytest.raises(HTTPException) as exc_info:
            await user_service.login_with_pin(db_session, identifier="pin@example.com", pin="0000")
        assert exc_info.value.detail == "Invalid credentials"


class TestOtp:

    async def test_request_creates_placeholder_and_echoes_code(self, db_session):
        data = await user_service.request_otp(db_session, phone="+919866666666")
        assert data["phone"] == "+919866666666"
        assert data["smsSent"] is False
        assert len(data["otp"]) == 6

        user = await user_service.get_by_phone(db_session, "+919866666666")
        assert user.first_name == "User"
        assert user.otp_code == data["otp"]

    async def test_code_not_echoed_in_production(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        data = await user_service.request_otp(db_session, phone="+919877777777")
        assert "otp" not in data

    async def test_verify_clears_code(self, db_session):
        data = await user_service.request_otp(db_session, phone="+919888888888")
        user = await user_service.verify_otp(db_session, phone="+919888888888", otp=data["otp"])
        assert user.phone_verified is True
        assert user.otp_code is None

    async def test_wrong_code(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "otp_bypass_code", None)
        await user_service.request_otp(db_session, phone="+919899999999")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.verify_otp(db_session, phone="+919899999999", otp="000000")
        assert exc_info.value.detail == "Invalid OTP"

    async def test_inactive_account_gets_no_token(self, db_session, make_user):
        user = await make_user(phone="+919870000001", is_active=False)
        data = await user_service.request_otp(db_session, phone="+919870000001")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.verify_otp(db_session, phone="+919870000001", otp=data["otp"])
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Account is inactive"
        assert user.phone_verified is False

    @pytest.mark.unit
    def test_expired_code(self, monkeypatch):
        monkeypatch.setattr(settings, "otp_bypass_code", None)
        user = User(otp_code="111111", otp_expires_at=datetime.utcnow() - timedelta(seconds=1))
        with pytest.raises(HTTPException) as exc_info:
            user_service.check_otp(user, "111111")
        assert exc_info.value.detail == "OTP expired"

    @pytest.mark.unit
    def test_never_requested(self, monkeypatch):
        monkeypatch.setattr(settings, "otp_bypass_code", None)
        with pytest.raises(HTTPException) as exc_info:
            user_service.check_otp(User(), "111111")
        assert exc_info.value.detail == "Invalid OTP or OTP not requested"

    @pytest.mark.unit
    def test_bypass_code_outside_production(self):
        user = User(id=1)
        assert user_service.check_otp(user, settings.otp_bypass_code) is True

    @pytest.mark.unit
    def test_bypass_needs_existing_user(self):
        with pytest.raises(HTTPException) as exc_info:
            user_service.check_otp(None, settings.otp_bypass_code)
        assert exc_info.value.detail == "User not found. Please request OTP first."

    @pytest.mark.unit
    def test_bypass_ignored_in_production(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        with pytest.raises(HTTPException):
            user_service.check_otp(User(id=1), settings.otp_bypass_code)


class TestPin:

    async def test_forgot_and_reset(self, db_session, make_user):
        user = await make_user(email="pin@example.com", pin="1111")
        data = await user_service.forgot_pin(db_session, identifier="pin@example.com")

        await user_service.reset_pin(
            db_session, identifier="pin@example.com", otp=data["otp"], new_pin="2222", confirm_pin="2222"
        )
        assert user.otp_code is None
        assert (await user_service.login_with_pin(db_session, identifier=user.phone, pin="2222")).id == user.id

    async def test_forgot_unknown_user(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await user_service.forgot_pin(db_session, identifier="ghost@example.com")
        assert exc_info.value.status_code == 404

    async def test_reset_mismatch(self, db_session, make_user):
        await make_user(email="pin@example.com")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.reset_pin(
                db_session, identifier="pin@example.com", otp="123456", new_pin="1234", confirm_pin="4321"
            )
        assert exc_info.value.detail == "PINs do not match"

    async def test_set_pin(self, db_session, make_user):
        user = await make_user()
        await user_service.set_pin(db_session, user=user, pin="987654", confirm_pin="987654")
        assert user.pin_hash


class TestProfileAndAdmin:

    async def test_update_profile_phone_conflict(self, db_session, make_user):
        taken = await make_user()
        user = await make_user()
        with pytest.raises(HTTPException) as exc_info:
            await user_service.update_profile(db_session, user=user, phone=taken.phone)
        assert exc_info.value.status_code == 409

        user = await user_service.update_profile(db_session, user=user, first_name="New", last_name="Name")
        assert user.full_name == "New Name"

    async def test_change_password(self, db_session, make_user):
        user = await make_user("admin", email="a@sejas.com", password="old-pass")
        with pytest.raises(HTTPException) as exc_info:
            await user_service.change_password(db_session, user=user, current_password="bad", new_password="x1")
        assert exc_info.value.detail == "Current password is incorrect"

        await user_service.change_password(db_session, user=user, current_password="old-pass", new_password="new-pass")
        assert (await user_service.login_with_password(db_session, email="a@sejas.com", password="new-pass")).id == user.id

    async def test_set_active_and_counts(self, db_session, make_user):
        await make_user("admin", email="a@sejas.com", password="admin123")
        customer = await make_user()
        await make_user("delivery", email="d@sejas.com", password="secret1")

        user = await user_service.set_active(db_session, user_id=customer.id, is_active=False)
        assert user.is_active is False
        assert await user_service.count_non_admin(db_session) == 2

        with pytest.raises(HTTPException) as exc_info:
            await user_service.set_active(db_session, user_id=9999, is_active=True)
        assert exc_info.value.status_code == 404
