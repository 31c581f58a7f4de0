from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    current_page: int
    total_pages: int
    total: int


def total_pages(total: int, limit: int) -> int:
    # An empty collection has zero pages.
    if limit <= 0:
        return 0
    return int(math.ceil(total / limit))


def paginate(db: Session, stmt: Select[Any], *, page: int, limit: int) -> Page[Any]:
    """Run ``stmt`` for one page; ``stmt`` must already carry its ordering."""
    page = max(1, int(page))
    limit = max(1, int(limit))

    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    items = list(db.scalars(stmt.offset((page - 1) * limit).limit(limit)))

    return Page(items=items, current_page=page, total_pages=total_pages(int(total), limit), total=int(total))
