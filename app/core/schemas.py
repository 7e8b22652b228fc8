from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class FeeBreakdown(BaseModel):
    """Fee snapshot in minor units. total is after discount."""

    tuition: int = 0
    miscellaneous: int = 0
    laboratory: int = 0
    discount: int = 0
    total: int = 0


class Page(BaseModel, Generic[T]):
    """One page of a listing plus the counts a paginator needs."""

    items: List[T]
    total: int
    page: int
    per_page: int
    pages: int
