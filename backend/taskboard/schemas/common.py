from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every successful response."""
    success: bool = True
    message: str | None = None
    data: T | None = None


class Page(BaseModel, Generic[T]):
    """One page of a list endpoint."""
    items: list[T]
    total: int
    page: int
    per_page: int
    last_page: int
