# Overview: Page-number pagination shared by list services and routes.

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable

from flask import current_app

from .exceptions import ValidationError


@dataclass(frozen=True)
class Page:
    items: list
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def pagination_dict(self) -> dict:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "pages": self.pages,
        }

    def to_dict(self, key: str, serialize: Callable[[Any], dict]) -> dict:
        return {
            key: [serialize(item) for item in self.items],
            "pagination": self.pagination_dict(),
        }


def normalize_page_args(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Apply defaults and clamp page_size to MAX_PAGE_SIZE."""
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 200)

    page = 1 if page is None else page
    page_size = default_size if page_size is None else page_size

    if page < 1:
        raise ValidationError("page must be >= 1", field="page")
    if page_size < 1:
        raise ValidationError("page_size must be >= 1", field="page_size")
    return page, min(page_size, max_size)


def paginate(query, page: int | None = None, page_size: int | None = None) -> Page:
    """Run an ordered query for one page. The count ignores ORDER BY."""
    page, page_size = normalize_page_args(page, page_size)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return Page(items=items, page=page, page_size=page_size, total=total)


def page_args_from_request(request) -> tuple[int | None, int | None]:
    """Read ?page= and ?page_size= (?limit= accepted as an alias)."""
    page = request.args.get("page", type=int)
    page_size = request.args.get("page_size", type=int)
    if page_size is None:
        page_size = request.args.get("limit", type=int)
    return page, page_size
