"""
SMS service — OTP delivery through Twilio.

Without Twilio credentials (local development) messages are only logged and
the caller is told nothing was delivered, so the OTP endpoints can echo the
code back instead.
"""

import logging

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from config import settings
from services.async_executor import run_blocking

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_client() -> Client:
    """Lazy-initialize the Twilio REST client."""
    global _client
    if _client is None:
        _client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
    return _client


def _mask(phone: str) -> str:
    return f"{phone[:3]}****{phone[-3:]}" if len(phone) > 6 else "****"


async def send_sms(phone: str, message: str) -> dict:
    """
    Send an SMS. Never raises.

    Returns:
        {"success": bool, "delivered": bool, "sid"?: str, "error"?: str}
    """
    if not settings.sms_configured:
        logger.info(f"[SMS not configured] To {_mask(phone)}: {message}")
        return {"success": True, "delivered": False}

    try:
        msg = await run_blocking(
            get_client().messages.create,
            body=message,
            from_=settings.twilio_phone_number,
            to=phone,
        )
        logger.info(f"SMS sent to {_mask(phone)} (sid={msg.sid})")
        return {"success": True, "delivered": True, "sid": msg.sid}
    except TwilioException as e:
        logger.error(f"Twilio SMS to {_mask(phone)} failed: {e}")
        return {"success": False, "delivered": False, "error": str(e)}
    except Exception as e:
        logger.error(f"SMS to {_mask(phone)} failed: {e}", exc_info=True)
        return {"success": False, "delivered": False, "error": str(e)}
