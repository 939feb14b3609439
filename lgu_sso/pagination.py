from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session
from starlette.datastructures import URL

from lgu_sso.schemas import PaginationLinks, PaginationMeta

T = TypeVar("T")

DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_index(self) -> int | None:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + 1

    @property
    def last_index(self) -> int | None:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + len(self.items)


def paginate(db: Session, stmt: Select[Any], *, page: int, per_page: int) -> Page[Any]:
    page = max(1, page)
    per_page = min(max(1, per_page), MAX_PER_PAGE)
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = int(db.scalar(count_stmt) or 0)
    items = list(db.scalars(stmt.offset((page - 1) * per_page).limit(per_page)).all())
    return Page(items=items, total=total, page=page, per_page=per_page)


def build_meta(page: Page[Any], url: URL) -> tuple[PaginationMeta, PaginationLinks]:
    def page_url(number: int) -> str:
        return str(url.include_query_params(page=number))

    meta = PaginationMeta(
        current_page=page.page,
        from_=page.first_index,
        last_page=page.last_page,
        per_page=page.per_page,
        to=page.last_index,
        total=page.total,
        path=str(url.replace(query="")),
    )
    links = PaginationLinks(
        first=page_url(1),
        last=page_url(page.last_page),
        prev=page_url(page.page - 1) if page.page > 1 else None,
        next=page_url(page.page + 1) if page.page < page.last_page else None,
    )
    return meta, links
