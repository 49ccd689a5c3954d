# backend/product_service/app/schemas.py

import math
import uuid
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, NAME_MAX_LENGTH

T = TypeVar("T")

SORT_FIELDS = ("name", "price", "quantity")
SORT_DIRECTIONS = ("asc", "desc")


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted on input as well
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    price: Decimal = Field(..., gt=0)
    quantity: int = Field(..., ge=0)


class ProductCreate(ProductBase):
    pass


class ProductReplace(ProductBase):
    version: int = Field(
        ..., ge=1, description="Version the client last saw for this product."
    )


class ProductPatch(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=NAME_MAX_LENGTH)
    price: Optional[Decimal] = Field(None, gt=0)
    quantity: Optional[int] = Field(None, ge=0)
    version: int = Field(
        ..., ge=1, description="Version the client last saw for this product."
    )

    def changes(self) -> dict:
        """Fields the client actually sent, excluding the version token."""
        data = self.model_dump(exclude_unset=True, exclude={"version"})
        return {key: value for key, value in data.items() if value is not None}


class ProductResponse(CamelModel):
    id: uuid.UUID
    name: str
    price: Decimal
    quantity: int
    version: int

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)


class ProductQuery(CamelModel):
    """Paging, filtering and sorting options for the product list."""

    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    search: Optional[str] = Field(None, max_length=255)
    sort_by: Optional[str] = Field(
        None, description="One of name, price, quantity. Anything else sorts by name."
    )
    sort_direction: Optional[str] = Field(None, description="asc or desc.")

    @field_validator("sort_direction")
    @classmethod
    def check_sort_direction(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().lower()
        if value not in SORT_DIRECTIONS:
            raise ValueError("sortDirection must be 'asc' or 'desc'.")
        return value


class PagedResult(CamelModel, Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total_items: int

    @computed_field(alias="totalPages")
    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_items / self.page_size)


class ErrorResponse(CamelModel):
    status: int
    error: str
    trace_id: str
    current_version: Optional[int] = None
    details: Optional[list] = None
