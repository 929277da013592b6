from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ListResponse(BaseModel, Generic[T]):
    success: bool = True
    data: list[T]
    pagination: Pagination


class ItemResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: str | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str | None = None
