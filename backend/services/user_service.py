"""
User service — registration, the three login flows, OTP/PIN management
and admin user management.

Login flows:
  - Mobile app: phone only, phone + OTP, or email/phone + PIN
  - Admin/delivery consoles: email + password (customers are refused)
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Address, User
from domain.enums import Role
from domain.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from middleware.auth import generate_otp_with_expiry, hash_secret, verify_secret
from services import sms_service
from services.address_service import serialize_address
from utils.validators import (
    looks_like_email,
    validate_email,
    validate_phone,
    validate_pin_pair,
)

logger = logging.getLogger(__name__)

STAFF_ROLES = (Role.ADMIN.value, Role.DELIVERY.value)


def serialize_user(user: User, *, include_addresses: bool = False) -> dict:
    """Public user shape; hashes and OTP state are never exposed."""
    data = {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "fullName": user.full_name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "isActive": user.is_active,
        "phoneVerified": user.phone_verified,
        "emailVerified": user.email_verified,
        "hasPin": bool(user.pin_hash),
        "pushPlatform": user.push_platform,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }
    if include_addresses:
        data["savedAddresses"] = [serialize_address(a) for a in user.addresses]
    return data


# ── Lookups ─────────────────────────────────────────────────────────

async def get_by_phone(db: AsyncSession, phone: str) -> User | None:
    res = await db.execute(select(User).where(User.phone == phone.strip()))
    return res.scalar_one_or_none()


async def get_by_email(db: AsyncSession, email: str) -> User | None:
    res = await db.execute(select(User).where(User.email == email.strip().lower()))
    return res.scalar_one_or_none()


async def find_by_identifier(db: AsyncSession, identifier: str) -> User | None:
    """Email or phone."""
    identifier = identifier.strip()
    if looks_like_email(identifier):
        return await get_by_email(db, identifier)
    return await get_by_phone(db, identifier)


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User")
    return user


async def _ensure_unique(db: AsyncSession, *, phone: str, email: str | None) -> None:
    if await get_by_phone(db, phone):
        raise ValidationError("User already exists with this phone number")
    if email and await get_by_email(db, email):
        raise ValidationError("User already exists with this email")


# ── Registration ────────────────────────────────────────────────────

async def create_user(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str = "",
    phone: str,
    email: str | None = None,
    password: str | None = None,
    pin: str | None = None,
    role: str = Role.CUSTOMER.value,
) -> User:
    """Create any account. Staff accounts need email + password."""
    phone = validate_phone(phone)
    email = validate_email(email) if email else None
    if role in STAFF_ROLES and (not email or not password):
        raise ValidationError("Email and password are required for admin and delivery roles")
    await _ensure_unique(db, phone=phone, email=email)

    user = User(
        first_name=first_name.strip(),
        last_name=(last_name or "").strip(),
        phone=phone,
        email=email,
        password_hash=hash_secret(password) if password else None,
        pin_hash=hash_secret(pin) if pin else None,
        role=role,
        is_active=True,
        phone_verified=True,
        email_verified=role in STAFF_ROLES,
        addresses=[],
    )
    db.add(user)
    await db.flush()
    logger.info(f"User created: id={user.id} role={role}")
    return user


async def register_customer(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str = "",
    phone: str,
    email: str | None = None,
    pin: str | None = None,
    address: dict | None = None,
) -> User:
    """Public sign-up; the optional address becomes the default Home address."""
    if pin:
        validate_pin_pair(pin, pin)
    user = await create_user(
        db,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        email=email,
        pin=pin,
        role=Role.CUSTOMER.value,
    )
    if address:
        user.addresses.append(
            Address(
                user_id=user.id,
                label="Home",
                street=address["street"],
                city=address["city"],
                state=address["state"],
                zip_code=address["zip_code"],
                country=address.get("country") or "India",
                landmark="",
                is_default=True,
            )
        )
        await db.flush()
    return user


# ── Login ───────────────────────────────────────────────────────────

async def login_with_password(db: AsyncSession, *, email: str, password: str) -> User:
    """Console login; customers get 403 even with a valid password."""
    user = await get_by_email(db, email)
    if not user or not verify_secret(password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        raise UnauthorizedError("Account is inactive")
    if user.role not in STAFF_ROLES:
        raise PermissionDeniedError("Access denied. Admin or delivery role required.")
    return user


async def login_with_phone(db: AsyncSession, *, phone: str) -> User:
    user = await get_by_phone(db, phone)
    if not user:
        raise UnauthorizedError("User not found. Please sign up first.")
    if not user.is_active:
        raise UnauthorizedError("Account is inactive")
    return user


async def login_with_pin(db: AsyncSession, *, identifier: str, pin: str) -> User:
    user = await find_by_identifier(db, identifier)
    if not user or not verify_secret(pin, user.pin_hash) or not user.is_active:
        raise UnauthorizedError("Invalid credentials")
    return user


# ── OTP ─────────────────────────────────────────────────────────────

def _otp_text(code: str) -> str:
    return f"Your {settings.app_name} OTP is {code}. Valid for {settings.otp_ttl_minutes} minutes."


async def _issue_otp(db: AsyncSession, user: User) -> dict:
    code, expires_at = generate_otp_with_expiry()
    user.otp_code = code
    user.otp_expires_at = expires_at
    await db.flush()

    sms = await sms_service.send_sms(user.phone, _otp_text(code))
    data = {"phone": user.phone, "expiresIn": f"{settings.otp_ttl_minutes} minutes"}
    # Local development without Twilio: hand the code back to the client
    if not settings.sms_configured and not settings.is_production:
        data["otp"] = code
    data["smsSent"] = bool(sms.get("delivered"))
    return data


async def request_otp(db: AsyncSession, *, phone: str) -> dict:
    """Find or create (placeholder "User") the account for `phone` and send an OTP."""
    phone = validate_phone(phone)
    user = await get_by_phone(db, phone)
    if not user:
        user = User(first_name="User", last_name="", phone=phone, role=Role.CUSTOMER.value, addresses=[])
        db.add(user)
        await db.flush()
        logger.info(f"Placeholder user created for OTP login: id={user.id}")
    return await _issue_otp(db, user)


def check_otp(user: User | None, otp: str, now: datetime | None = None) -> bool:
    """
    Validate an OTP for `user`. Returns True when the bypass code was used.

    Raises:
        ValidationError(400) for a wrong, expired or never-requested OTP
    """
    if settings.otp_bypass_enabled and otp == settings.otp_bypass_code:
        if not user:
            raise ValidationError("User not found. Please request OTP first.")
        logger.warning(f"Bypass OTP used for user {user.id}")
        return True

    if not user or not user.otp_code:
        raise ValidationError("Invalid OTP or OTP not requested")
    if user.otp_code != otp:
        raise ValidationError("Invalid OTP")
    if (now or datetime.utcnow()) > user.otp_expires_at:
        raise ValidationError("OTP expired")
    return False


def _clear_otp(user: User) -> None:
    user.otp_code = None
    user.otp_expires_at = None


async def verify_otp(db: AsyncSession, *, phone: str, otp: str) -> User:
    user = await get_by_phone(db, phone)
    bypass = check_otp(user, otp)
    if not user.is_active:
        raise UnauthorizedError("Account is inactive")
    if not bypass:
        _clear_otp(user)
    user.phone_verified = True
    await db.flush()
    return user


# ── PIN ─────────────────────────────────────────────────────────────

async def forgot_pin(db: AsyncSession, *, identifier: str) -> dict:
    user = await find_by_identifier(db, identifier)
    if not user:
        raise NotFoundError("User")
    return await _issue_otp(db, user)


async def reset_pin(db: AsyncSession, *, identifier: str, otp: str, new_pin: str, confirm_pin: str) -> User:
    validate_pin_pair(new_pin, confirm_pin)
    user = await find_by_identifier(db, identifier)
    if not user:
        raise NotFoundError("User")
    bypass = check_otp(user, otp)
    if not bypass:
        _clear_otp(user)
    user.pin_hash = hash_secret(new_pin)
    await db.flush()
    return user


async def set_pin(db: AsyncSession, *, user: User, pin: str, confirm_pin: str) -> User:
    validate_pin_pair(pin, confirm_pin)
    user.pin_hash = hash_secret(pin)
    await db.flush()
    return user


# ── Profile ─────────────────────────────────────────────────────────

async def update_profile(
    db: AsyncSession,
    *,
    user: User,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
) -> User:
    if first_name:
        user.first_name = first_name.strip()
    if last_name is not None:
        user.last_name = last_name.strip()
    if phone and phone.strip() != user.phone:
        phone = validate_phone(phone)
        existing = await get_by_phone(db, phone)
        if existing and existing.id != user.id:
            raise ConflictError("Phone number is already in use")
        user.phone = phone
    user.updated_at = datetime.utcnow()
    await db.flush()
    return user


async def change_password(db: AsyncSession, *, user: User, current_password: str, new_password: str) -> User:
    if not verify_secret(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_secret(new_password)
    await db.flush()
    return user


# ── Admin ───────────────────────────────────────────────────────────

async def list_users(db: AsyncSession) -> list[User]:
    res = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return res.scalars().all()


async def set_active(db: AsyncSession, *, user_id: int, is_active: bool) -> User:
    user = await get_user(db, user_id)
    user.is_active = is_active
    user.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
    return user


async def count_non_admin(db: AsyncSession) -> int:
    res = await db.execute(select(func.count(User.id)).where(User.role != Role.ADMIN.value))
    return res.scalar() or 0
