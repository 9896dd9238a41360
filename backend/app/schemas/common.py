"""Common API response schemas."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Consistent JSON envelope for API responses."""

    data: T


class CollectionRead(BaseModel, Generic[T]):
    """A cached collection, optionally narrowed to one district."""

    items: list[T]
    count: int
    district: str | None = None

    @classmethod
    def of(cls, items: list[T], district: str | None = None) -> "CollectionRead[T]":
        return cls(items=items, count=len(items), district=district)
