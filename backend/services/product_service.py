"""
Product service — public catalogue queries, suggestions and admin CRUD.

Images are stored as bare filenames under the uploads directory (or as
absolute URLs) and resolved to public URLs on the way out.
"""

import logging
import os
import uuid
from datetime import datetime

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Order, Product
from domain.constants import FULFILLED_STATUSES
from domain.errors import NotFoundError, ValidationError
from utils.validators import resolve_image_url

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
RECENT_ORDERS_FOR_SUGGESTIONS = 10

_EDITABLE = (
    "name", "description", "price", "discounted_price", "category", "subcategory",
    "delivery_time", "is_active", "in_stock", "stock_quantity", "weight_value",
    "weight_unit", "discount_percentage", "discount_valid_until",
    "preparation_method", "tags", "images", "image",
    "rating", "ratings_average", "ratings_count",
)


def serialize_product(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "discountedPrice": p.discounted_price,
        "image": resolve_image_url(p.image),
        "images": [
            {**img, "url": resolve_image_url(img.get("url"))}
            for img in (p.images or [])
            if isinstance(img, dict)
        ],
        "category": p.category,
        "subcategory": p.subcategory,
        "rating": p.rating,
        "ratings": {"average": p.ratings_average, "count": p.ratings_count},
        "deliveryTime": p.delivery_time,
        "isActive": p.is_active,
        "availability": {"inStock": p.in_stock, "quantity": p.stock_quantity},
        "weight": {"value": p.weight_value, "unit": p.weight_unit},
        "discount": {
            "percentage": p.discount_percentage,
            "validUntil": p.discount_valid_until.isoformat() if p.discount_valid_until else None,
        },
        "preparationMethod": p.preparation_method,
        "tags": p.tags or [],
        "createdAt": p.created_at.isoformat() if p.created_at else None,
        "updatedAt": p.updated_at.isoformat() if p.updated_at else None,
    }


# ── Public queries ──────────────────────────────────────────────────

def _search_clause(term: str):
    pattern = f"%{term.strip().lower()}%"
    return or_(
        func.lower(Product.name).like(pattern),
        func.lower(Product.description).like(pattern),
        func.lower(cast(Product.tags, String)).like(pattern),
    )


async def list_products(
    db: AsyncSession,
    *,
    limit: int = 20,
    offset: int = 0,
    category: str | None = None,
    search: str | None = None,
) -> tuple[list[Product], int]:
    """Active products, newest first."""
    clauses = [Product.is_active == True]  # noqa: E712
    if category:
        clauses.append(Product.category == category)
    if search:
        clauses.append(_search_clause(search))

    total = (await db.execute(select(func.count(Product.id)).where(*clauses))).scalar() or 0
    res = await db.execute(
        select(Product)
        .where(*clauses)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total


async def search_products(db: AsyncSession, *, q: str | None) -> list[Product]:
    if not q or not q.strip():
        raise ValidationError("Please provide search term")
    res = await db.execute(
        select(Product)
        .where(Product.is_active == True, _search_clause(q))  # noqa: E712
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return res.scalars().all()


async def list_by_category(db: AsyncSession, *, category: str) -> list[Product]:
    res = await db.execute(
        select(Product)
        .where(Product.is_active == True, Product.category == category)  # noqa: E712
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return res.scalars().all()


async def get_product(db: AsyncSession, *, product_id: int, active_only: bool = True) -> Product:
    product = await db.get(Product, product_id)
    if not product or (active_only and not product.is_active):
        raise NotFoundError("Product")
    return product


async def _popular(db: AsyncSession, *, limit: int, exclude_ids: set[int], categories: set[str] | None = None):
    if limit <= 0:
        return []
    stmt = select(Product).where(Product.is_active == True)  # noqa: E712
    if categories:
        stmt = stmt.where(Product.category.in_(categories))
    if exclude_ids:
        stmt = stmt.where(Product.id.notin_(exclude_ids))
    res = await db.execute(
        stmt.order_by(Product.ratings_average.desc(), Product.created_at.desc(), Product.id.desc()).limit(limit)
    )
    return list(res.scalars().all())


async def suggested_products(db: AsyncSession, *, user_id: int | None, limit: int = 10) -> list[Product]:
    """
    Personalized picks for signed-in customers, popular products otherwise.

    Uses the categories of the user's recent fulfilled orders, skipping
    products they already ordered, topped up with other popular products.
    """
    if user_id is None:
        return await _popular(db, limit=limit, exclude_ids=set())

    res = await db.execute(
        select(Order)
        .where(Order.customer_id == user_id, Order.status.in_(FULFILLED_STATUSES))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(RECENT_ORDERS_FOR_SUGGESTIONS)
    )
    categories: set[str] = set()
    ordered_ids: set[int] = set()
    for order in res.scalars().all():
        for item in order.items:
            ordered_ids.add(item.product_id)
            if item.product is not None and item.product.category:
                categories.add(item.product.category)

    products = []
    if categories:
        products = await _popular(db, limit=limit, exclude_ids=ordered_ids, categories=categories)
    if len(products) < limit:
        seen = ordered_ids | {p.id for p in products}
        products += await _popular(db, limit=limit - len(products), exclude_ids=seen)
    return products


# ── Admin ───────────────────────────────────────────────────────────

def save_image(content: bytes, original_name: str | None) -> str:
    """Write an uploaded image into the uploads dir; returns the stored filename."""
    ext = os.path.splitext(original_name or "")[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError("Only image files are allowed (jpg, jpeg, png, webp, gif)")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(
            f"Image too large (max {settings.max_upload_bytes // (1024 * 1024)}MB)"
        )
    os.makedirs(settings.uploads_dir, exist_ok=True)
    filename = f"product-{uuid.uuid4().hex}{ext}"
    with open(os.path.join(settings.uploads_dir, filename), "wb") as fh:
        fh.write(content)
    logger.info(f"Stored product image {filename} ({len(content)} bytes)")
    return filename


async def list_all_products(db: AsyncSession) -> list[Product]:
    """Admin view, inactive products included."""
    res = await db.execute(select(Product).order_by(Product.created_at.desc(), Product.id.desc()))
    return res.scalars().all()


async def create_product(db: AsyncSession, *, fields: dict) -> Product:
    missing = [f for f in ("name", "description", "price", "category") if fields.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    product = Product(**{k: v for k, v in fields.items() if k in _EDITABLE and v is not None})
    if product.images is None:
        product.images = []
    if product.tags is None:
        product.tags = []
    db.add(product)
    await db.flush()
    logger.info(f"Product created: {product.id} {product.name}")
    return product


async def update_product(db: AsyncSession, *, product_id: int, fields: dict) -> Product:
    product = await get_product(db, product_id=product_id, active_only=False)
    for field in _EDITABLE:
        if fields.get(field) is not None:
            setattr(product, field, fields[field])
    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def soft_delete_product(db: AsyncSession, *, product_id: int) -> Product:
    product = await get_product(db, product_id=product_id, active_only=False)
    product.is_active = False
    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def count_active(db: AsyncSession) -> int:
    res = await db.execute(select(func.count(Product.id)).where(Product.is_active == True))  # noqa: E712
    return res.scalar() or 0
