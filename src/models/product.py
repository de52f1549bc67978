"""Catalog domain models: reference objects, variants, designs and pages."""

from __future__ import annotations

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config import settings

ReferenceKind = Literal["size", "type"]
GroupBy = Literal["design"]

T = TypeVar("T")


class SizeReference(BaseModel):
    """Populated size reference object as sent by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    name: str
    display_name: str | None = Field(None, alias="displayName")
    order: int | None = None


class TypeReference(BaseModel):
    """Populated shirt type reference object."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    name: str


class Variant(BaseModel):
    """One purchasable size of a design, with its own price, image and stock."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    image_url: str
    base_price: float = Field(..., ge=0)
    final_price: float = Field(..., ge=0)
    size_name: str
    type_name: str
    stock_quantity: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _final_price_within_base(self) -> Variant:
        if self.final_price > self.base_price:
            raise ValueError("final_price must not exceed base_price")
        return self

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0


class Design(BaseModel):
    """A design grouped with all of its size variants.

    Representative prices are copied from the first variant rather than
    aggregated across variants.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    type_name: str
    representative_base_price: float = 0
    representative_final_price: float = 0
    variants: list[Variant] = Field(default_factory=list)
    available_size_names: list[str] = Field(default_factory=list)


class Page(BaseModel, Generic[T]):
    """Canonical paginated collection."""

    items: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 0
    total_pages: int = 0


class CatalogFilters(BaseModel):
    """Catalog filters expressed in human-readable names."""

    size_name: str | None = None
    type_name: str | None = None
    min_price: float | None = Field(None, ge=0)
    max_price: float | None = Field(None, ge=0)


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_LIMIT, ge=1)
