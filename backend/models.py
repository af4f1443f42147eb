"""
Pydantic models for request validation.

Field aliases are the camelCase names the mobile app and web consoles send.
"""
import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.enums import (
    AddressLabel,
    CouponType,
    OrderStatus,
    PaymentMethod,
    Role,
)


class ApiModel(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Auth Models ─────────────────────────────────────────────────────

class RegisterAddress(ApiModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., alias="zipCode", min_length=1)
    country: Optional[str] = None


class RegisterRequest(ApiModel):
    """Customer self-registration from the mobile app."""
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field("", alias="lastName", max_length=100)
    phone: str = Field(..., min_length=2, max_length=20)
    email: Optional[str] = None
    pin: Optional[str] = None
    address: Optional[RegisterAddress] = None


class LoginRequest(ApiModel):
    """Either email + password (consoles) or phone alone (mobile app)."""
    phone: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class PinLoginRequest(ApiModel):
    identifier: str = Field(..., min_length=1, description="Email or phone")
    pin: str = Field(..., min_length=1)


class OtpRequest(ApiModel):
    phone: str = Field(..., min_length=2, max_length=20)


class VerifyOtpRequest(ApiModel):
    phone: str = Field(..., min_length=2, max_length=20)
    otp: str = Field(..., min_length=1, max_length=10)


class ForgotPinRequest(ApiModel):
    identifier: str = Field(..., min_length=1)


class ResetPinRequest(ApiModel):
    identifier: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1, max_length=10)
    new_pin: str = Field(..., alias="newPin")
    confirm_pin: str = Field(..., alias="confirmPin")


class SetPinRequest(ApiModel):
    pin: str
    confirm_pin: str = Field(..., alias="confirmPin")


class UpdateProfileRequest(ApiModel):
    first_name: Optional[str] = Field(None, alias="firstName", max_length=100)
    last_name: Optional[str] = Field(None, alias="lastName", max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


class ChangePasswordRequest(ApiModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=6)


# ── Push Models ─────────────────────────────────────────────────────

class PushTokenRequest(ApiModel):
    push_token: str = Field(..., alias="pushToken", min_length=1)
    platform: Optional[str] = None


class PushSubscriptionKeys(ApiModel):
    p256dh: str
    auth: str


class PushSubscription(ApiModel):
    """Browser PushSubscription.toJSON() shape."""
    endpoint: str = Field(..., min_length=1)
    expiration_time: Optional[int] = Field(None, alias="expirationTime")
    keys: PushSubscriptionKeys


class PushSubscriptionRequest(ApiModel):
    subscription: PushSubscription


# ── Cart Models ─────────────────────────────────────────────────────

class AddToCartRequest(ApiModel):
    product_id: int = Field(..., alias="productId", gt=0)
    quantity: int = Field(1, ge=1, le=100)


class UpdateCartItemRequest(ApiModel):
    quantity: int = Field(..., ge=1, le=100)


class CouponCodeRequest(ApiModel):
    code: str = Field(..., min_length=1, max_length=50)


# ── Coupon Models ───────────────────────────────────────────────────

class ValidateCouponRequest(ApiModel):
    code: str = Field(..., min_length=1, max_length=50)
    order_amount: float = Field(0.0, alias="orderAmount", ge=0)


class CouponCreateRequest(ApiModel):
    code: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    type: CouponType
    value: float = Field(..., ge=0)
    minimum_order_value: float = Field(0.0, alias="minimumOrderValue", ge=0)
    maximum_discount: Optional[float] = Field(None, alias="maximumDiscount", ge=0)
    valid_from: datetime = Field(..., alias="validFrom")
    valid_to: datetime = Field(..., alias="validTo")
    usage_limit: Optional[int] = Field(None, alias="usageLimit", ge=0)
    is_active: bool = Field(True, alias="isActive")


class CouponUpdateRequest(ApiModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    type: Optional[CouponType] = None
    value: Optional[float] = Field(None, ge=0)
    minimum_order_value: Optional[float] = Field(None, alias="minimumOrderValue", ge=0)
    maximum_discount: Optional[float] = Field(None, alias="maximumDiscount", ge=0)
    valid_from: Optional[datetime] = Field(None, alias="validFrom")
    valid_to: Optional[datetime] = Field(None, alias="validTo")
    usage_limit: Optional[int] = Field(None, alias="usageLimit", ge=0)
    is_active: Optional[bool] = Field(None, alias="isActive")


# ── Address Models ──────────────────────────────────────────────────

class Coordinates(ApiModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AddressCreateRequest(ApiModel):
    label: AddressLabel = AddressLabel.HOME
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., alias="zipCode", min_length=1, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    coordinates: Optional[Coordinates] = None
    is_default: bool = Field(False, alias="isDefault")


class AddressUpdateRequest(ApiModel):
    label: Optional[AddressLabel] = None
    street: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    zip_code: Optional[str] = Field(None, alias="zipCode", min_length=1, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    coordinates: Optional[Coordinates] = None
    is_default: Optional[bool] = Field(None, alias="isDefault")


# ── Order Models ────────────────────────────────────────────────────

class OrderItemRequest(ApiModel):
    product_id: int = Field(..., alias="product", gt=0)
    quantity: int = Field(1, ge=1, le=100)


class DeliveryAddress(ApiModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., alias="zipCode", min_length=1)
    country: Optional[str] = None
    landmark: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class ContactInfo(ApiModel):
    phone: Optional[str] = None
    email: Optional[str] = None


class OrderCreateRequest(ApiModel):
    items: List[OrderItemRequest] = Field(default_factory=list)
    saved_address_id: Optional[int] = Field(None, alias="savedAddressId")
    delivery_address: Optional[DeliveryAddress] = Field(None, alias="deliveryAddress")
    contact_info: Optional[ContactInfo] = Field(None, alias="contactInfo")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH_ON_DELIVERY, alias="paymentMethod")
    special_instructions: Optional[str] = Field(None, alias="specialInstructions", max_length=1000)


class CancelOrderRequest(ApiModel):
    reason: Optional[str] = Field(None, max_length=500)


class UpdateOrderStatusRequest(ApiModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=500)


class AssignOrderRequest(ApiModel):
    assigned_to: int = Field(..., alias="assignedTo", gt=0)
    estimated_time: Optional[str] = Field(None, alias="estimatedTime", max_length=50)
    notes: Optional[str] = Field(None, max_length=500)


class DeliveryStatusRequest(ApiModel):
    status: str


# ── Notification Models ─────────────────────────────────────────────

class NotificationPreferences(ApiModel):
    push: Optional[bool] = None
    email: Optional[bool] = None
    sms: Optional[bool] = None
    in_app: Optional[bool] = Field(None, alias="inApp")


class WelcomeNotificationRequest(ApiModel):
    user_id: Optional[int] = Field(None, alias="userId")


# ── Admin Models ────────────────────────────────────────────────────

class AdminUserCreateRequest(ApiModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field("", alias="lastName", max_length=100)
    phone: str = Field(..., min_length=2, max_length=20)
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Role = Role.CUSTOMER

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else None


class UserStatusRequest(ApiModel):
    is_active: bool = Field(..., alias="isActive")


class ProductImage(ApiModel):
    id: Optional[str] = None
    url: str
    alt: Optional[str] = None


def parse_form_list(raw: Optional[str]) -> Optional[list[Any]]:
    """Multipart forms carry lists as JSON or comma-separated strings."""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return []
    if raw.startswith("["):
        try:
            value = json.loads(raw)
        except ValueError:
            return [part.strip() for part in raw.strip("[]").split(",") if part.strip()]
        return value if isinstance(value, list) else [value]
    return [part.strip() for part in raw.split(",") if part.strip()]
