"""
Push service — best-effort delivery to a user's devices.

Two channels, tried in order:
  1. Web Push (admin/delivery consoles) — VAPID-signed via pywebpush.
     A 404/410 from the push service means the browser dropped the
     subscription, so it is cleared.
  2. Expo (mobile app) — POST to the Expo push API via httpx.
     A DeviceNotRegistered ticket clears the token. Legacy fake tokens
     ("web_...") written by old console builds are cleared on sight.

Provider failures are logged and returned, never raised.
"""

import json
import logging
import re

import httpx
from pywebpush import WebPushException, webpush
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import User
from domain.constants import FAKE_WEB_TOKEN_PREFIX
from services.async_executor import run_blocking

logger = logging.getLogger(__name__)

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.+\]$")
GONE_STATUSES = (404, 410)


def is_expo_token(token: str | None) -> bool:
    return bool(token) and bool(_EXPO_TOKEN_RE.match(token))


def _result(success: bool, channel: str | None, error: str | None = None, **extra) -> dict:
    out = {"success": success, "channel": channel}
    if error:
        out["error"] = error
    out.update(extra)
    return out


# ── Web Push ────────────────────────────────────────────────────────

def _web_push_payload(title: str, body: str, data: dict) -> str:
    return json.dumps({
        "title": title,
        "body": body,
        "icon": "/icon-192.png",
        "badge": "/icon-192.png",
        "data": data,
    })


async def _send_web_push(db: AsyncSession, user: User, title: str, body: str, data: dict) -> dict:
    try:
        await run_blocking(
            webpush,
            subscription_info=user.push_subscription,
            data=_web_push_payload(title, body, data),
            vapid_private_key=settings.vapid_private_key,
            vapid_claims={"sub": settings.vapid_subject},
        )
        logger.info(f"Web push sent to user {user.id}")
        return _result(True, "web")
    except WebPushException as e:
        status_code = getattr(e.response, "status_code", None)
        if status_code in GONE_STATUSES:
            logger.info(f"Web push subscription gone for user {user.id} ({status_code}); clearing")
            user.push_subscription = None
            await db.flush()
        else:
            logger.warning(f"Web push to user {user.id} failed: {e}")
        return _result(False, "web", str(e), statusCode=status_code)
    except Exception as e:
        logger.error(f"Web push to user {user.id} failed: {e}", exc_info=True)
        return _result(False, "web", str(e))


# ── Expo ────────────────────────────────────────────────────────────

def _expo_headers() -> dict:
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": "application/json",
    }
    if settings.expo_access_token:
        headers["Authorization"] = f"Bearer {settings.expo_access_token}"
    return headers


def build_expo_message(token: str, user_id: int, title: str, body: str, data: dict) -> dict:
    return {
        "to": token,
        "sound": "default",
        "title": title,
        "body": body,
        "data": {**data, "userId": str(user_id)},
        "priority": "high",
        "channelId": "orders",
    }


async def _send_expo(db: AsyncSession, user: User, token: str, title: str, body: str, data: dict) -> dict:
    message = build_expo_message(token, user.id, title, body, data)
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(settings.expo_push_url, headers=_expo_headers(), json=message)
            response.raise_for_status()
            result = response.json()
    except httpx.HTTPError as e:
        logger.error(f"Expo push to user {user.id} failed: {e}")
        return _result(False, "expo", str(e))
    except ValueError as e:
        logger.error(f"Expo push to user {user.id} returned a non-JSON body: {e}")
        return _result(False, "expo", "Invalid response from Expo")

    ticket = result.get("data") if isinstance(result, dict) else None
    if isinstance(ticket, list):
        ticket = ticket[0] if ticket else None
    if not isinstance(ticket, dict):
        logger.error(f"Expo push to user {user.id} returned an unexpected body: {result!r}")
        return _result(False, "expo", "Invalid response from Expo")

    if ticket.get("status") == "error":
        error_code = (ticket.get("details") or {}).get("error")
        if error_code == "DeviceNotRegistered":
            logger.info(f"Expo token for user {user.id} is no longer registered; clearing")
            user.push_token = None
            await db.flush()
        else:
            logger.warning(f"Expo push to user {user.id} rejected: {ticket.get('message')}")
        return _result(False, "expo", ticket.get("message") or error_code or "Expo push error")

    logger.info(f"Expo push sent to user {user.id} (ticket={ticket.get('id')})")
    return _result(True, "expo", ticketId=ticket.get("id"))


# ── Public API ──────────────────────────────────────────────────────

async def send_push_notification(
    db: AsyncSession,
    user: User,
    title: str,
    body: str,
    data: dict | None = None,
) -> dict:
    """
    Deliver one notification to `user`, web subscription first, then Expo.

    Returns:
        {"success": bool, "channel": "web" | "expo" | None, "error"?: str}
    """
    data = dict(data or {})
    web_error = None

    if user.push_subscription:
        if settings.web_push_configured:
            web = await _send_web_push(db, user, title, body, data)
            if web["success"]:
                return web
            web_error = web.get("error")
        else:
            logger.debug(f"User {user.id} has a web subscription but VAPID keys are not configured")

    token = user.push_token
    if token and token.startswith(FAKE_WEB_TOKEN_PREFIX):
        logger.info(f"Clearing legacy fake web token for user {user.id}")
        user.push_token = None
        await db.flush()
        token = None

    if token:
        if not is_expo_token(token):
            logger.warning(f"User {user.id} has a malformed push token; skipping")
            return _result(False, "expo", "Invalid Expo push token")
        return await _send_expo(db, user, token, title, body, data)

    return _result(False, None, web_error or "No push token or subscription")


async def send_push_to_many(
    db: AsyncSession,
    users: list[User],
    title: str,
    body: str,
    data: dict | None = None,
) -> list[dict]:
    """Sequential fan-out; one result per user."""
    results = []
    for user in users:
        result = await send_push_notification(db, user, title, body, data)
        results.append({"userId": user.id, **result})
    sent = sum(1 for r in results if r["success"])
    logger.info(f"Push fan-out: {sent}/{len(results)} delivered")
    return results


# ── Registration ────────────────────────────────────────────────────

async def save_push_token(db: AsyncSession, *, user: User, push_token: str, platform: str | None) -> User:
    user.push_token = push_token
    user.push_platform = platform
    await db.flush()
    return user


async def save_push_subscription(db: AsyncSession, *, user: User, subscription: dict) -> User:
    user.push_subscription = subscription
    user.push_platform = user.push_platform or "web"
    # A real subscription supersedes any legacy fake token
    if user.push_token and user.push_token.startswith(FAKE_WEB_TOKEN_PREFIX):
        user.push_token = None
    await db.flush()
    return user


async def clear_push_subscription(db: AsyncSession, *, user: User) -> User:
    user.push_subscription = None
    await db.flush()
    return user
