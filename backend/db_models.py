"""
SQLAlchemy ORM models for the Meat Delivery API.

Tables:
    users                — customers, admins and delivery agents
    addresses            — saved delivery addresses (one default per user)
    products             — catalogue items
    carts / cart_items   — one cart per user, prices frozen at add-time
    coupons              — discount codes
    coupon_redemptions   — which users have used which coupon
    orders / order_items — placed orders with a pricing breakdown
    order_status_events  — order status history
    notifications        — in-app notification inbox
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base


class User(Base):
    """Any account: customer (mobile app), admin or delivery (web consoles)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    password_hash = Column(String(128), nullable=True)
    pin_hash = Column(String(128), nullable=True)
    role = Column(String(20), nullable=False, default="customer", index=True)  # customer | admin | delivery
    is_active = Column(Boolean, nullable=False, default=True)
    phone_verified = Column(Boolean, nullable=False, default=False)
    email_verified = Column(Boolean, nullable=False, default=False)

    # Push targets: Expo token (mobile) and/or Web Push subscription (consoles)
    push_token = Column(String(255), nullable=True)
    push_platform = Column(String(20), nullable=True)
    push_subscription = Column(JSON, nullable=True)

    notification_preferences = Column(JSON, nullable=True)

    otp_code = Column(String(10), nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    addresses = relationship("Address", back_populates="user", lazy="selectin", order_by="Address.id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    label = Column(String(20), nullable=False, default="Home")  # Home | Work | Other
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False, default="India")
    landmark = Column(String(255), nullable=False, default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="addresses")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    discounted_price = Column(Float, nullable=True)
    image = Column(String(500), nullable=True)  # filename under uploads/ or absolute URL
    images = Column(JSON, nullable=False, default=list)  # [{id, url, alt}]
    category = Column(String(20), nullable=False, index=True)  # premium | normal | exclusive
    subcategory = Column(String(100), nullable=True)
    rating = Column(Float, nullable=False, default=0.0)
    ratings_average = Column(Float, nullable=False, default=0.0)
    ratings_count = Column(Integer, nullable=False, default=0)
    delivery_time = Column(String(50), nullable=False, default="60-90 minutes")
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    in_stock = Column(Boolean, nullable=False, default=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    weight_value = Column(Float, nullable=False, default=1.0)
    weight_unit = Column(String(5), nullable=False, default="kg")
    discount_percentage = Column(Float, nullable=True)
    discount_valid_until = Column(DateTime, nullable=True)
    preparation_method = Column(String(100), nullable=False, default="Fresh")
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_products_category_active", "category", "is_active"),
    )

    @property
    def selling_price(self) -> float:
        """Price a customer pays right now."""
        return self.discounted_price or self.price


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    applied_coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    coupon_applied_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "CartItem",
        back_populates="cart",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )
    applied_coupon = relationship("Coupon", lazy="selectin")


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price_at_time = Column(Float, nullable=False)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product", lazy="selectin")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored upper-case
    description = Column(String(500), nullable=False)
    type = Column(String(20), nullable=False)  # percentage | fixed
    value = Column(Float, nullable=False)
    minimum_order_value = Column(Float, nullable=False, default=0.0)
    maximum_discount = Column(Float, nullable=True)
    valid_from = Column(DateTime, nullable=False)
    valid_to = Column(DateTime, nullable=False)
    usage_limit = Column(Integer, nullable=True)  # null = unlimited
    used_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    redemptions = relationship("CouponRedemption", lazy="selectin", cascade="all, delete-orphan")

    @property
    def used_by(self) -> list[int]:
        return [r.user_id for r in self.redemptions]


class CouponRedemption(Base):
    """One row per (coupon, user) — the coupon's "used by" set."""
    __tablename__ = "coupon_redemptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("coupon_id", "user_id", name="uq_coupon_redemption_user"),
    )


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    applied_coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)

    # Delivery address snapshot (not a FK: the saved address may change later)
    delivery_street = Column(String(255), nullable=True)
    delivery_city = Column(String(100), nullable=True)
    delivery_state = Column(String(100), nullable=True)
    delivery_zip_code = Column(String(20), nullable=True)
    delivery_country = Column(String(100), nullable=True)
    delivery_landmark = Column(String(255), nullable=True)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)

    contact_phone = Column(String(20), nullable=True)
    contact_email = Column(String(255), nullable=True)

    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)

    payment_method = Column(String(30), nullable=False, default="cash-on-delivery")
    payment_status = Column(String(20), nullable=False, default="pending")
    transaction_id = Column(String(100), nullable=True)

    status = Column(String(30), nullable=False, default="pending", index=True)
    special_instructions = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("User", foreign_keys=[customer_id], lazy="selectin")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id], lazy="selectin")
    items = relationship(
        "OrderItem", lazy="selectin", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    status_history = relationship(
        "OrderStatusEvent",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderStatusEvent.id",
    )

    __table_args__ = (
        # For customer order history: filter by customer, order by created_at DESC
        Index("ix_orders_customer_created", "customer_id", "created_at"),
        # For the courier pool: unassigned orders by status
        Index("ix_orders_status_assigned", "status", "assigned_to_id"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    price_at_time = Column(Float, nullable=False)
    name = Column(String(200), nullable=True)
    image = Column(String(500), nullable=True)

    product = relationship("Product", lazy="selectin")


class OrderStatusEvent(Base):
    __tablename__ = "order_status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String(30), nullable=False)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="system")
    category = Column(String(20), nullable=False, default="system")
    priority = Column(String(10), nullable=False, default="medium")
    is_read = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )
