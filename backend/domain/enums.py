"""
Domain enums shared by models, services and routers.

Values match the wire format used by the mobile app and web consoles.
"""

from enum import Enum


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash-on-delivery"
    ONLINE = "online"
    CARD = "card"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ProductCategory(str, Enum):
    PREMIUM = "premium"
    NORMAL = "normal"
    EXCLUSIVE = "exclusive"


class WeightUnit(str, Enum):
    KG = "kg"
    G = "g"
    LB = "lb"


class AddressLabel(str, Enum):
    HOME = "Home"
    WORK = "Work"
    OTHER = "Other"


class NotificationType(str, Enum):
    ORDER = "order"
    PROMOTION = "promotion"
    SYSTEM = "system"
    DELIVERY = "delivery"
    PAYMENT = "payment"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
