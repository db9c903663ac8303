from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, TypeVar

from models.errors import ValidationError

T = TypeVar("T")

MAX_PAGE_SIZE = 100


def page_window(page: int, limit: int) -> int:
    """Validate paging arguments and return the number of rows to skip."""
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * limit


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self, serialize: Callable[[T], Any], key: str = "items") -> Dict[str, Any]:
        return {
            key: [serialize(item) for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }
