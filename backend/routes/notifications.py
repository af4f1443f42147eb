"""
In-app notification inbox for the signed-in user.

Specific paths are registered before /{notification_id}.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user, page_params
from domain.enums import NotificationType, Role
from domain.errors import PermissionDeniedError
from domain.responses import paginated_response, success_response
from models import NotificationPreferences, WelcomeNotificationRequest
from services import notification_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    category: Optional[NotificationType] = None,
    is_read: Optional[bool] = Query(None, alias="isRead"),
    type: Optional[NotificationType] = None,
    paging: dict = Depends(page_params(20)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await notification_service.list_notifications(
        db,
        user_id=user.id,
        limit=paging["limit"],
        offset=paging["offset"],
        category=category.value if category else None,
        is_read=is_read,
        type=type.value if type else None,
    )
    return paginated_response(
        [notification_service.serialize_notification(n) for n in items],
        page=paging["page"],
        limit=paging["limit"],
        total=total,
    )


@router.get("/unread-count")
async def unread_count(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    count = await notification_service.unread_count(db, user_id=user.id)
    return success_response({"count": count})


@router.get("/preferences")
async def get_preferences(user: User = Depends(get_current_user)):
    return success_response(notification_service.get_preferences(user))


@router.put("/preferences")
async def update_preferences(
    request: NotificationPreferences,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    prefs = await notification_service.update_preferences(
        db, user=user, changes=request.model_dump(by_alias=True, exclude_none=True)
    )
    await db.commit()
    return success_response(prefs, message="Notification preferences updated")


@router.patch("/read-all")
async def mark_all_read(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    modified = await notification_service.mark_all_read(db, user_id=user.id)
    await db.commit()
    return success_response({"modifiedCount": modified}, message="All notifications marked as read")


@router.post("/welcome")
async def send_welcome(
    request: WelcomeNotificationRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = user
    if request and request.user_id and request.user_id != user.id:
        if user.role != Role.ADMIN.value:
            raise PermissionDeniedError("Not authorized")
        target = await user_service.get_user(db, request.user_id)
    notification = await notification_service.send_welcome(db, user=target)
    await db.commit()
    return success_response(
        notification_service.serialize_notification(notification), message="Welcome notification sent"
    )


@router.delete("/clear-all")
async def clear_all(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    deleted = await notification_service.clear_all(db, user_id=user.id)
    await db.commit()
    return success_response({"deletedCount": deleted}, message="All notifications cleared")


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.get_notification(
        db, user_id=user.id, notification_id=notification_id
    )
    return success_response(notification_service.serialize_notification(notification))


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.mark_read(
        db, user_id=user.id, notification_id=notification_id
    )
    await db.commit()
    return success_response(notification_service.serialize_notification(notification))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await notification_service.delete_notification(db, user_id=user.id, notification_id=notification_id)
    await db.commit()
    return success_response(None, message="Notification deleted")
