"""Page-numbered query results."""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docspine.core.errors import InvalidArgumentError

if TYPE_CHECKING:
    from docspine.query import Query


@dataclass(frozen=True)
class Page(Sequence):
    """One page of documents plus pagination metadata (pages are 1-based)."""

    items: tuple[Any, ...]
    total_entries: int
    per_page: int
    current_page: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_entries / self.per_page)

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.per_page

    @property
    def previous_page(self) -> int | None:
        return self.current_page - 1 if self.current_page > 1 else None

    @property
    def next_page(self) -> int | None:
        return self.current_page + 1 if self.current_page < self.total_pages else None

    @property
    def out_of_bounds(self) -> bool:
        return self.current_page > self.total_pages

    def __getitem__(self, index):
        return self.items[index]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)


def paginate(query: Query, page: int | str = 1, per_page: int | str | None = None) -> Page:
    """Count with a separate call, then fetch the requested slice."""
    settings = query.require_context().settings
    try:
        page = int(page)
        per_page = settings.default_per_page if per_page is None else int(per_page)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError("page and per_page must be integers") from exc
    if page < 1:
        raise InvalidArgumentError(f"page must be >= 1, got {page}")
    if per_page < 1:
        raise InvalidArgumentError(f"per_page must be >= 1, got {per_page}")
    per_page = min(per_page, settings.max_per_page)

    total = query.count()
    items = query.skip((page - 1) * per_page).limit(per_page).all()
    return Page(items=tuple(items), total_entries=total, per_page=per_page, current_page=page)


__all__ = ["Page", "paginate"]
