"""
Push-target registration for the signed-in user.

  - Mobile app:  POST /users/push-token         {pushToken, platform}
  - Consoles:    POST /users/push-subscription  {subscription: PushSubscription JSON}
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user
from domain.responses import success_response
from models import PushSubscriptionRequest, PushTokenRequest
from services import push_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.post("/push-token")
async def save_push_token(
    request: PushTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not push_service.is_expo_token(request.push_token):
        logger.warning(f"User {user.id} registered a non-Expo push token")
    await push_service.save_push_token(
        db, user=user, push_token=request.push_token, platform=request.platform
    )
    await db.commit()
    return success_response(
        {"pushToken": user.push_token, "platform": user.push_platform},
        message="Push token saved successfully",
    )


@router.post("/push-subscription")
async def save_push_subscription(
    request: PushSubscriptionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = request.subscription.model_dump(by_alias=True, exclude_none=True)
    await push_service.save_push_subscription(db, user=user, subscription=subscription)
    await db.commit()
    logger.info(f"Web push subscription saved for user {user.id}")
    return success_response(
        {"endpoint": subscription["endpoint"]}, message="Push subscription saved successfully"
    )


@router.delete("/push-subscription")
async def delete_push_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await push_service.clear_push_subscription(db, user=user)
    await db.commit()
    return success_response(None, message="Push subscription removed")
