"""
Domain constants used across services/routers.
"""
from domain.enums import OrderStatus

ORDER_NUMBER_PREFIX = "ORD"
CURRENCY_SYMBOL = "₹"

# Orders a courier may pick up from the pool
PICKUP_STATUSES = (OrderStatus.CONFIRMED.value, OrderStatus.PREPARING.value)

# Orders shown on a courier's active list
COURIER_ACTIVE_STATUSES = (OrderStatus.PREPARING.value, OrderStatus.OUT_FOR_DELIVERY.value)

# Orders that count towards purchase history for suggestions
FULFILLED_STATUSES = (
    OrderStatus.CONFIRMED.value,
    OrderStatus.PREPARING.value,
    OrderStatus.OUT_FOR_DELIVERY.value,
    OrderStatus.DELIVERED.value,
)

# Legacy web clients stored made-up tokens like "web_1699999999" in push_token
FAKE_WEB_TOKEN_PREFIX = "web_"

DEFAULT_COUNTRY = "India"
DEFAULT_ETA = "30 minutes"
DELIVERED_HISTORY_LIMIT = 50

DEFAULT_NOTIFICATION_PREFERENCES = {
    "push": True,
    "email": True,
    "sms": False,
    "inApp": True,
}

COUPON_INVALID_MESSAGE = "Invalid or expired coupon"
COUPON_EXHAUSTED_FOR_USER_MESSAGE = (
    "You have already used this coupon and the usage limit has been reached"
)
