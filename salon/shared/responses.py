"""Response envelope and pagination helpers shared by all routers"""

import math
from typing import Any, Optional

from sqlalchemy.orm import Query

MAX_PAGE_SIZE = 100


def api_response(data: Any = None, message: str = "Success") -> dict[str, Any]:
    """Standard success envelope: {success, data, message}"""
    return {"success": True, "data": data, "message": message}


def error_body(message: str, errors: Optional[list] = None) -> dict[str, Any]:
    """Standard error envelope used by the exception handlers"""
    body: dict[str, Any] = {"success": False, "data": None, "message": message}
    if errors:
        body["errors"] = errors
    return body


def pagination_meta(page: int, limit: int, total: int) -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total": total,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def paginate(query: Query, page: int = 1, limit: int = 10) -> tuple[list, dict[str, Any]]:
    """Apply offset/limit to an already ordered query and build pagination metadata"""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, pagination_meta(page, limit, total)
