"""
Product catalogue endpoints (public).

Specific paths (/search, /suggested, /category/...) are registered before
/{product_id} so they are not captured by it.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_optional_user, page_params
from domain.enums import ProductCategory
from domain.responses import paginated_response, success_response
from services import product_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
async def list_products(
    category: Optional[ProductCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    paging: dict = Depends(page_params(20)),
    db: AsyncSession = Depends(get_db),
):
    products, total = await product_service.list_products(
        db,
        limit=paging["limit"],
        offset=paging["offset"],
        category=category.value if category else None,
        search=search,
    )
    return paginated_response(
        [product_service.serialize_product(p) for p in products],
        page=paging["page"],
        limit=paging["limit"],
        total=total,
    )


@router.get("/search")
async def search_products(
    q: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    products = await product_service.search_products(db, q=q)
    return success_response(
        [product_service.serialize_product(p) for p in products],
        meta={"count": len(products)},
    )


@router.get("/suggested")
async def suggested_products(
    limit: int = Query(10, ge=1, le=50),
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    products = await product_service.suggested_products(
        db, user_id=user.id if user else None, limit=limit
    )
    return success_response(
        [product_service.serialize_product(p) for p in products],
        meta={"count": len(products), "personalized": user is not None},
    )


@router.get("/category/{category}")
async def products_by_category(category: ProductCategory, db: AsyncSession = Depends(get_db)):
    products = await product_service.list_by_category(db, category=category.value)
    return success_response(
        [product_service.serialize_product(p) for p in products],
        meta={"count": len(products)},
    )


@router.get("/{product_id}")
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await product_service.get_product(db, product_id=product_id)
    return success_response(product_service.serialize_product(product))
