"""
Token and credential helpers.

  - Access tokens are HS256 JWTs carrying the user id in `sub` and the role
    in `role`. All clients (mobile app, admin and delivery consoles) send
    them as `Authorization: Bearer <jwt>`.
  - Passwords (console logins) and PINs (mobile app) are stored as bcrypt
    hashes.
  - OTPs are 6-digit numeric codes with a short expiry.
"""
import logging
import secrets
from datetime import datetime, timezone, timedelta
from typing import Optional

import bcrypt
import jwt

from config import settings
from domain.errors import UnauthorizedError, DomainError, ValidationError

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def _require_secret() -> str:
    if not settings.jwt_secret:
        raise DomainError("Server auth misconfigured (JWT secret missing).", status_code=500)
    return settings.jwt_secret


# ── JWT ─────────────────────────────────────────────────────────────

def issue_access_token(user_id: int, role: str) -> str:
    secret = _require_secret()
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.jwt_access_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    secret = _require_secret()
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Not authorized, token failed")


# ── Password / PIN hashing ──────────────────────────────────────────

# bcrypt only reads the first 72 bytes; newer releases refuse longer input
BCRYPT_MAX_BYTES = 72


def hash_secret(raw: str) -> str:
    encoded = raw.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_secret(raw: str, hashed: Optional[str]) -> bool:
    """Constant-time bcrypt check; False for accounts with no secret set."""
    if not raw or not hashed:
        return False
    try:
        return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored credential hash is malformed")
        return False


# ── OTP ─────────────────────────────────────────────────────────────

def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def generate_otp_with_expiry(minutes: int | None = None) -> tuple[str, datetime]:
    """Returns (code, expires_at) with a naive UTC expiry to match the DB columns."""
    ttl = minutes if minutes is not None else settings.otp_ttl_minutes
    return generate_otp(), datetime.utcnow() + timedelta(minutes=ttl)
