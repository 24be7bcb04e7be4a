from math import ceil
from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel, Generic[T]):
    data: List[T]
    pagination: Pagination

    @classmethod
    def build(cls, items: List[T], total: int, page: int, limit: int) -> "Page[T]":
        return cls(
            data=items,
            pagination=Pagination(page=page, limit=limit, total=total, pages=ceil(total / limit) if limit else 0),
        )


class MessageResponse(BaseModel):
    message: str
