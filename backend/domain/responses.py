"""
Standard API response helpers for consistent response formatting.

All endpoints use these helpers so every client sees the same envelopes:
- Success: { "success": true, "data": <payload>, "meta": {...} }
- Error: { "success": false, "error": { "code": "...", "message": "...", "details": {...} } }
"""
import math
from typing import Any


def success_response(data: Any, meta: dict[str, Any] | None = None, message: str | None = None) -> dict[str, Any]:
    """
    Create a standardized success response.

    Args:
        data: The response payload
        meta: Optional metadata (pagination, stats, etc.)
        message: Optional human-readable message for toasts in the clients

    Returns:
        dict: { "success": true, "data": <data>, "meta": <meta>, "message": <message> }
    """
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    if message:
        response["message"] = message
    return response


def paginated_response(items: list[Any], *, page: int, limit: int, total: int) -> dict[str, Any]:
    """
    Create a standardized page-number paginated response.

    Returns:
        dict: { "success": true, "data": <items>,
                "meta": { "page", "pages", "limit", "total", "hasMore" } }
    """
    pages = math.ceil(total / limit) if limit else 0
    meta = {
        "page": page,
        "pages": pages,
        "limit": limit,
        "total": total,
        "hasMore": page * limit < total,
    }
    return {"success": True, "data": items, "meta": meta}


def error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details,
        },
    }
