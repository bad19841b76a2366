# Overview: Page/limit parsing and offset pagination for list endpoints.

from __future__ import annotations

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def parse_page_args(args, *, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT) -> tuple[int, int]:
    """Read ?page=&limit= from request args. page >= 1, 1 <= limit <= max_limit."""
    page = args.get("page", type=int) or 1
    limit = args.get("limit", type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def paginate(query, *, page: int, limit: int) -> tuple[list, dict]:
    """
    Apply offset pagination to a SQLAlchemy query.

    Returns (rows, meta) where meta carries total, page, limit, totalPages,
    hasNext and hasPrev. totalPages is ceil(total / limit) and 0 for an empty
    result.
    """
    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }
