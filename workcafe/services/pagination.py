from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class PageResult(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


def count_rows(db: Session, stmt: Select) -> int:
    """Number of rows `stmt` would return, ignoring its ORDER BY / LIMIT."""
    return int(db.scalar(select(func.count()).select_from(stmt.order_by(None).limit(None).offset(None).subquery())) or 0)
