"""
Pagination envelope shared by list endpoints.
"""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    results: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, results: list, total: int, page: int, limit: int) -> "Page":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            results=results,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )
