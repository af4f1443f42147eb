"""
Admin console endpoints — users, dashboard, products, coupons and orders.

Every route requires the admin role (router-level dependency). Product
create/update take multipart form data so an image can be uploaded with
the fields.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import require_admin
from domain.enums import OrderStatus, ProductCategory, WeightUnit
from domain.errors import ValidationError
from domain.responses import success_response
from models import (
    AdminUserCreateRequest,
    AssignOrderRequest,
    CouponCreateRequest,
    CouponUpdateRequest,
    ProductImage,
    UpdateOrderStatusRequest,
    UserStatusRequest,
    parse_form_list,
)
from services import coupon_service, order_service, product_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ── Users ───────────────────────────────────────────────────────────

@router.get("/users")
async def list_users(db: AsyncSession = Depends(get_db)):
    users = await user_service.list_users(db)
    return success_response([user_service.serialize_user(u) for u in users], meta={"count": len(users)})


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(request: AdminUserCreateRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.create_user(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        email=request.email,
        password=request.password,
        role=request.role.value,
    )
    await db.commit()
    return success_response(user_service.serialize_user(user), message="User created successfully")


@router.get("/users/{user_id}")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    return success_response(user_service.serialize_user(user, include_addresses=True))


@router.patch("/users/{user_id}/status")
async def set_user_status(user_id: int, request: UserStatusRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.set_active(db, user_id=user_id, is_active=request.is_active)
    await db.commit()
    state = "activated" if user.is_active else "deactivated"
    return success_response(user_service.serialize_user(user), message=f"User {state} successfully")


# ── Dashboard ───────────────────────────────────────────────────────

@router.get("/dashboard")
async def dashboard(db: AsyncSession = Depends(get_db)):
    return success_response(
        {
            "totalOrders": await order_service.count_orders(db),
            "totalRevenue": await order_service.delivered_revenue(db),
            "totalProducts": await product_service.count_active(db),
            "totalUsers": await user_service.count_non_admin(db),
        }
    )


# ── Products ────────────────────────────────────────────────────────

def _product_fields(
    *,
    name, description, price, discounted_price, category, subcategory, delivery_time,
    is_active, in_stock, stock_quantity, weight_value, weight_unit, preparation_method,
    tags, images,
) -> dict:
    fields = {
        "name": name,
        "description": description,
        "price": price,
        "discounted_price": discounted_price,
        "category": category.value if category else None,
        "subcategory": subcategory,
        "delivery_time": delivery_time,
        "is_active": is_active,
        "in_stock": in_stock,
        "stock_quantity": stock_quantity,
        "weight_value": weight_value,
        "weight_unit": weight_unit.value if weight_unit else None,
        "preparation_method": preparation_method,
        "tags": parse_form_list(tags),
    }
    raw_images = parse_form_list(images)
    if raw_images is not None:
        try:
            fields["images"] = [
                ProductImage.model_validate(img if isinstance(img, dict) else {"url": img}).model_dump()
                for img in raw_images
            ]
        except ValueError as e:
            raise ValidationError(f"Invalid images: {e}")
    return fields


async def _store_upload(image: Optional[UploadFile]) -> Optional[str]:
    if image is None or not image.filename:
        return None
    content = await image.read()
    return product_service.save_image(content, image.filename)


@router.get("/products")
async def list_products(db: AsyncSession = Depends(get_db)):
    products = await product_service.list_all_products(db)
    return success_response(
        [product_service.serialize_product(p) for p in products],
        meta={"count": len(products)},
    )


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(
    name: str = Form(...),
    description: str = Form(...),
    price: float = Form(..., ge=0),
    category: ProductCategory = Form(...),
    discounted_price: Optional[float] = Form(None, alias="discountedPrice", ge=0),
    subcategory: Optional[str] = Form(None),
    delivery_time: Optional[str] = Form(None, alias="deliveryTime"),
    is_active: Optional[bool] = Form(None, alias="isActive"),
    in_stock: Optional[bool] = Form(None, alias="inStock"),
    stock_quantity: Optional[int] = Form(None, alias="stockQuantity", ge=0),
    weight_value: Optional[float] = Form(None, alias="weightValue", gt=0),
    weight_unit: Optional[WeightUnit] = Form(None, alias="weightUnit"),
    preparation_method: Optional[str] = Form(None, alias="preparationMethod"),
    tags: Optional[str] = Form(None),
    images: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    fields = _product_fields(
        name=name, description=description, price=price, discounted_price=discounted_price,
        category=category, subcategory=subcategory, delivery_time=delivery_time,
        is_active=is_active, in_stock=in_stock, stock_quantity=stock_quantity,
        weight_value=weight_value, weight_unit=weight_unit,
        preparation_method=preparation_method, tags=tags, images=images,
    )
    fields["image"] = await _store_upload(image)
    product = await product_service.create_product(db, fields=fields)
    await db.commit()
    return success_response(product_service.serialize_product(product), message="Product created successfully")


@router.put("/products/{product_id}")
async def update_product(
    product_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None, ge=0),
    category: Optional[ProductCategory] = Form(None),
    discounted_price: Optional[float] = Form(None, alias="discountedPrice", ge=0),
    subcategory: Optional[str] = Form(None),
    delivery_time: Optional[str] = Form(None, alias="deliveryTime"),
    is_active: Optional[bool] = Form(None, alias="isActive"),
    in_stock: Optional[bool] = Form(None, alias="inStock"),
    stock_quantity: Optional[int] = Form(None, alias="stockQuantity", ge=0),
    weight_value: Optional[float] = Form(None, alias="weightValue", gt=0),
    weight_unit: Optional[WeightUnit] = Form(None, alias="weightUnit"),
    preparation_method: Optional[str] = Form(None, alias="preparationMethod"),
    tags: Optional[str] = Form(None),
    images: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    fields = _product_fields(
        name=name, description=description, price=price, discounted_price=discounted_price,
        category=category, subcategory=subcategory, delivery_time=delivery_time,
        is_active=is_active, in_stock=in_stock, stock_quantity=stock_quantity,
        weight_value=weight_value, weight_unit=weight_unit,
        preparation_method=preparation_method, tags=tags, images=images,
    )
    fields["image"] = await _store_upload(image)
    product = await product_service.update_product(db, product_id=product_id, fields=fields)
    await db.commit()
    return success_response(product_service.serialize_product(product), message="Product updated successfully")


@router.delete("/products/{product_id}")
async def delete_product(product_id: int, db: AsyncSession = Depends(get_db)):
    await product_service.soft_delete_product(db, product_id=product_id)
    await db.commit()
    return success_response(None, message="Product deleted successfully")


# ── Coupons ─────────────────────────────────────────────────────────

@router.get("/coupons")
async def list_coupons(db: AsyncSession = Depends(get_db)):
    coupons = await coupon_service.list_all(db)
    return success_response(
        [coupon_service.serialize_coupon(c, admin=True) for c in coupons],
        meta={"count": len(coupons)},
    )


@router.post("/coupons", status_code=status.HTTP_201_CREATED)
async def create_coupon(request: CouponCreateRequest, db: AsyncSession = Depends(get_db)):
    coupon = await coupon_service.create_coupon(
        db,
        code=request.code,
        description=request.description,
        coupon_type=request.type.value,
        value=request.value,
        minimum_order_value=request.minimum_order_value,
        maximum_discount=request.maximum_discount,
        valid_from=request.valid_from,
        valid_to=request.valid_to,
        usage_limit=request.usage_limit,
        is_active=request.is_active,
    )
    await db.commit()
    return success_response(coupon_service.serialize_coupon(coupon, admin=True), message="Coupon created successfully")


@router.put("/coupons/{coupon_id}")
async def update_coupon(coupon_id: int, request: CouponUpdateRequest, db: AsyncSession = Depends(get_db)):
    changes = request.model_dump(exclude_none=True)
    if request.type is not None:
        changes["type"] = request.type.value
    coupon = await coupon_service.update_coupon(db, coupon_id=coupon_id, changes=changes)
    await db.commit()
    return success_response(coupon_service.serialize_coupon(coupon, admin=True), message="Coupon updated successfully")


@router.delete("/coupons/{coupon_id}")
async def delete_coupon(coupon_id: int, db: AsyncSession = Depends(get_db)):
    await coupon_service.soft_delete_coupon(db, coupon_id=coupon_id)
    await db.commit()
    return success_response(None, message="Coupon deleted successfully")


# ── Orders ──────────────────────────────────────────────────────────

@router.get("/orders")
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.list_all_orders(db, status=status_filter.value if status_filter else None)
    return success_response(
        [order_service.serialize_order(o) for o in orders],
        meta={"count": len(orders)},
    )


@router.get("/orders/stats")
async def order_stats(db: AsyncSession = Depends(get_db)):
    return success_response(await order_service.order_stats(db))


@router.get("/orders/{order_id}")
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    order = await order_service.get_order(db, order_id=order_id)
    return success_response(order_service.serialize_order(order))


@router.patch("/orders/{order_id}/status")
async def update_order_status(order_id: int, request: UpdateOrderStatusRequest, db: AsyncSession = Depends(get_db)):
    order = await order_service.update_status(
        db, order_id=order_id, status=request.status.value, notes=request.notes
    )
    await db.commit()
    return success_response(order_service.serialize_order(order), message="Order status updated successfully")


@router.patch("/orders/{order_id}/assign")
async def assign_order(order_id: int, request: AssignOrderRequest, db: AsyncSession = Depends(get_db)):
    order = await order_service.assign_courier(
        db,
        order_id=order_id,
        courier_id=request.assigned_to,
        estimated_time=request.estimated_time,
        notes=request.notes,
    )
    await db.commit()
    return success_response(order_service.serialize_order(order), message="Order assigned successfully")
