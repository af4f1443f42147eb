"""
In-memory rate limiting for the Meat Delivery API.

Protects the OTP, login and PIN endpoints from brute force and SMS abuse.
Uses a sliding-window counter per (client IP, route) key. State lives in
process memory, so each worker enforces its own limit.
"""
import time
import logging
from collections import defaultdict

from fastapi import Request

from domain.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter keyed by an arbitrary string."""

    def __init__(self):
        # {key: [timestamp1, timestamp2, ...]}
        self._hits: dict[str, list[float]] = defaultdict(list)

    def _prune(self, key: str, window_seconds: int) -> list[float]:
        cutoff = time.time() - window_seconds
        hits = [ts for ts in self._hits[key] if ts > cutoff]
        if hits:
            self._hits[key] = hits
        else:
            self._hits.pop(key, None)
        return hits

    def check(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """
        Record a hit for `key` if it fits in the window.

        Returns:
            True if allowed, False if rate-limited
        """
        hits = self._prune(key, window_seconds)
        if len(hits) >= max_requests:
            return False
        self._hits[key].append(time.time())
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: int) -> int:
        return max(0, max_requests - len(self._prune(key, window_seconds)))

    def reset(self) -> None:
        self._hits.clear()


# Shared by every rate_limit() dependency
limiter = RateLimiter()


def rate_limit(max_requests: int = 10, window_seconds: int = 60):
    """
    FastAPI dependency factory.

    Usage:
        @router.post("/request-otp")
        async def request_otp(body: OtpRequest, _rate=Depends(rate_limit(5, 300))):
            ...
    """
    async def _check_rate_limit(request: Request):
        client_ip = request.client.host if request.client else "unknown"
        route_path = request.url.path
        key = f"{client_ip}:{route_path}"

        if not limiter.check(key, max_requests, window_seconds):
            logger.warning(
                f"Rate limit exceeded: {client_ip} on {route_path} "
                f"({max_requests}/{window_seconds}s)"
            )
            raise RateLimitError(
                "Too many requests, please try again later.",
                details={"limit": max_requests, "windowSeconds": window_seconds},
            )

    return _check_rate_limit
