# medintake/pagination.py
import math
from typing import Optional

from fastapi import Query
from sqlalchemy.orm import Query as OrmQuery


class PageParams:
    def __init__(self, page: int, limit: int, search: Optional[str] = None):
        self.page = page
        self.limit = limit
        self.search = (search or "").strip() or None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(default_limit: int = 20):
    """Build a dependency parsing `page`, `limit` and `search` query parameters."""

    def dependency(
        page: int = Query(1, ge=1),
        limit: int = Query(default_limit, ge=1, le=100),
        search: Optional[str] = Query(None, max_length=100),
    ) -> PageParams:
        return PageParams(page, limit, search)

    return dependency


def page_meta(params: PageParams, total_count: int) -> dict:
    total_pages = math.ceil(total_count / params.limit) if total_count else 0
    return {
        "currentPage": params.page,
        "totalPages": total_pages,
        "totalCount": total_count,
        "limit": params.limit,
        "hasNext": params.page < total_pages,
        "hasPrev": params.page > 1,
    }


def paginate(query: OrmQuery, params: PageParams, *order_by):
    """Run a count query and a ranged query; return (rows, pagination envelope)."""
    total = query.order_by(None).count()
    rows = query.order_by(*order_by).offset(params.offset).limit(params.limit).all()
    return rows, page_meta(params, total)
