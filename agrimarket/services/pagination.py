# agrimarket/services/pagination.py
from __future__ import annotations

import math

from sqlalchemy import func, select


def page_params(args, default_limit: int = 20, max_limit: int = 100) -> tuple[int, int]:
    page = args.get("page", 1, type=int) or 1
    limit = args.get("limit", default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def paginate(session, stmt, page: int, limit: int):
    """Run `stmt` for one page. Returns (rows, pagination-meta)."""
    total = session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    rows = session.execute(stmt.limit(limit).offset((page - 1) * limit)).scalars().all()
    return rows, {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
