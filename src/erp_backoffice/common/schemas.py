"""Shared Pydantic schemas for the ERP back-office."""

import math
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "erp-backoffice"


class ApiResponse(BaseModel, Generic[T]):
    """Envelope returned by every endpoint."""

    status: int
    message: str
    data: Optional[T] = None


class ListParams(BaseModel):
    page: int = Field(default=1, ge=1)
    rows: int = Field(default=20, ge=1)
    search: str = ""
    sort_by: Optional[str] = None
    sort_ascending: bool = True

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.rows


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    next_page: Optional[int] = None
    total_pages: int
    rows_per_page: int
    total_rows: int
    from_: Optional[int] = Field(default=None, alias="from")
    to: Optional[int] = None

    @classmethod
    def build(cls, params: ListParams, total: int, returned: int) -> "Pagination":
        total_pages = math.ceil(total / params.rows) if total else 0
        return cls(
            current_page=params.page,
            next_page=params.page + 1 if params.page < total_pages else None,
            total_pages=total_pages,
            rows_per_page=params.rows,
            total_rows=total,
            from_=params.offset + 1 if returned else None,
            to=params.offset + returned if returned else None,
        )


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination
