"""Client-side paging over an already fully-loaded listing."""

from __future__ import annotations

from typing import Generic, List, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 15


class Page(BaseModel, Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total_items: int
    total_pages: int


def paginate(items: Sequence[T], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page[T]:
    """Slice ``items`` into 1-based pages; out-of-range pages clamp."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    total_items = len(items)
    total_pages = max(1, -(-total_items // page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )
