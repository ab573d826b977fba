# services/pagination.py
import math
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from core.config import settings


def clamp_page(page: Optional[int], limit: Optional[int]):
    page = max(1, page or 1)
    limit = limit or settings.DEFAULT_PAGE_SIZE
    limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
    return page, limit


def paginate(
    session: Session,
    statement,
    page: Optional[int] = 1,
    limit: Optional[int] = None,
    serialize: Optional[Callable[[Any], Any]] = None,
) -> Dict[str, Any]:
    """Run `statement` for one page and return {items, total, page, limit, pages}."""
    page, limit = clamp_page(page, limit)

    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    rows = session.exec(statement.offset((page - 1) * limit).limit(limit)).all()

    return {
        "items": [serialize(row) for row in rows] if serialize else list(rows),
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }
