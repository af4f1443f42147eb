"""
Input validation and formatting utilities for the Meat Delivery API.

Provides reusable validators for phone numbers, emails and PINs, plus the
small formatting helpers shared by serializers (prices, order numbers,
product image URLs).
"""
import random
import re
import time
from decimal import Decimal, ROUND_HALF_UP

from config import settings
from domain.constants import CURRENCY_SYMBOL, ORDER_NUMBER_PREFIX
from domain.errors import ValidationError

_PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PIN_RE = re.compile(r"^\d{4,6}$")


def is_valid_phone(phone: str | None) -> bool:
    """E.164-ish: optional '+', no leading zero, 2-15 digits."""
    return bool(phone) and bool(_PHONE_RE.match(phone))


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def validate_phone(phone: str) -> str:
    phone = (phone or "").strip()
    if not is_valid_phone(phone):
        raise ValidationError("Please provide a valid phone number")
    return phone


def validate_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not is_valid_email(email):
        raise ValidationError("Please provide a valid email")
    return email


def validate_pin_pair(pin: str, confirm_pin: str) -> str:
    """
    Check a new PIN and its confirmation.

    Raises:
        ValidationError(400) if they differ or the PIN is not 4-6 digits
    """
    if pin != confirm_pin:
        raise ValidationError("PINs do not match")
    if not _PIN_RE.match(pin or ""):
        raise ValidationError("PIN must be 4-6 digits")
    return pin


def looks_like_email(identifier: str) -> bool:
    return "@" in (identifier or "")


# ── Formatting ──────────────────────────────────────────────────────

def _group_indian(integer_digits: str) -> str:
    # 1234567 -> 12,34,567 (last three, then pairs)
    if len(integer_digits) <= 3:
        return integer_digits
    head, tail = integer_digits[:-3], integer_digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_amount(amount: float | int) -> str:
    """Indian digit grouping with up to two decimals, trailing zeros dropped."""
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    integer_part, _, fraction = f"{abs(value):.2f}".partition(".")
    fraction = fraction.rstrip("0")
    grouped = _group_indian(integer_part)
    return f"{sign}{grouped}.{fraction}" if fraction else f"{sign}{grouped}"


def format_price(amount: float | int) -> str:
    """e.g. 125000 -> '₹1,25,000'"""
    return f"{CURRENCY_SYMBOL}{format_amount(amount)}"


def generate_order_number() -> str:
    """ORD + last 10 digits of epoch millis + 3 random digits."""
    millis = str(int(time.time() * 1000))[-10:]
    return f"{ORDER_NUMBER_PREFIX}{millis}{random.randint(0, 999):03d}"


def resolve_image_url(value: str | None) -> str | None:
    """Stored filenames become public /uploads URLs; absolute URLs pass through."""
    if not value:
        return value
    if value.startswith(("http://", "https://", "data:")):
        return value
    base = settings.public_base_url.rstrip("/")
    return f"{base}/uploads/{value.lstrip('/')}"
