"""
Pytest configuration and shared fixtures for the Meat Delivery API tests.

Provides an in-memory SQLite session per test, an httpx client bound to
the FastAPI app with get_db overridden, and small factories for users,
products, coupons and auth headers.
"""
import itertools
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import db_models  # noqa: F401  (registers tables on Base.metadata)
from config import settings
from database import Base, get_db
from main import app
from middleware.auth import hash_secret, issue_access_token
from middleware.rate_limit import limiter

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"
settings.twilio_account_sid = ""
settings.vapid_private_key = ""
settings.bcrypt_rounds = 4

_phones = itertools.count(1)


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client for the FastAPI app with the in-memory database.

    Overrides the get_db dependency to use the test DB session.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


# ── Factories ─────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Create a user directly in the DB."""
    from db_models import User

    async def _make(
        role: str = "customer",
        *,
        first_name: str = "Test",
        last_name: str = "User",
        phone: str | None = None,
        email: str | None = None,
        password: str | None = None,
        pin: str | None = None,
        is_active: bool = True,
        **extra,
    ) -> User:
        user = User(
            first_name=first_name,
            last_name=last_name,
            phone=phone or f"+9198000{next(_phones):05d}",
            email=email,
            password_hash=hash_secret(password) if password else None,
            pin_hash=hash_secret(pin) if pin else None,
            role=role,
            is_active=is_active,
            addresses=[],
            **extra,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_product(db_session: AsyncSession):
    from db_models import Product

    async def _make(
        name: str = "Loin",
        *,
        price: float = 1500,
        discounted_price: float | None = None,
        category: str = "premium",
        is_active: bool = True,
        **extra,
    ) -> Product:
        product = Product(
            name=name,
            description=extra.pop("description", f"{name} cut"),
            price=price,
            discounted_price=discounted_price,
            category=category,
            is_active=is_active,
            images=extra.pop("images", []),
            tags=extra.pop("tags", []),
            **extra,
        )
        db_session.add(product)
        await db_session.commit()
        return product

    return _make


@pytest.fixture
def make_coupon(db_session: AsyncSession):
    from db_models import Coupon

    async def _make(
        code: str = "SAVE10",
        *,
        type: str = "percentage",
        value: float = 10,
        minimum_order_value: float = 0,
        maximum_discount: float | None = None,
        usage_limit: int | None = None,
        used_count: int = 0,
        is_active: bool = True,
        valid_from: datetime | None = None,
        valid_to: datetime | None = None,
    ) -> Coupon:
        now = datetime.utcnow()
        coupon = Coupon(
            code=code,
            description=f"{code} coupon",
            type=type,
            value=value,
            minimum_order_value=minimum_order_value,
            maximum_discount=maximum_discount,
            usage_limit=usage_limit,
            used_count=used_count,
            is_active=is_active,
            valid_from=valid_from or now - timedelta(days=1),
            valid_to=valid_to or now + timedelta(days=30),
            redemptions=[],
        )
        db_session.add(coupon)
        await db_session.commit()
        return coupon

    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for a user."""
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {issue_access_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def delivery_address() -> dict:
    return {
        "street": "12 MG Road",
        "city": "Hyderabad",
        "state": "Telangana",
        "zip_code": "500001",
    }
