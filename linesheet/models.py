"""Catalog data models.

Attributes are snake_case in Python and camelCase in stored documents
(``productCode``, ``createdAt``), matching the layout the web editor writes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from commonlib.timestamps import utcnow

DEFAULT_PRODUCT_NAME = "New Product"

PRODUCT_TEXT_FIELDS = ("product_code", "product_name", "content", "size", "price", "tax")

# Product fields a partial update may set back to None.
CLEARABLE_PRODUCT_FIELDS = ("logo_url",)


def new_id() -> str:
    return str(uuid4())


def _coerce_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class CatalogModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(CatalogModel):
    """One line item of a line sheet."""

    id: str = Field(default_factory=new_id)
    product_code: str = ""
    product_name: str = ""
    content: str = ""
    size: str = ""
    price: str = ""
    tax: str = ""
    images: list[str] = Field(default_factory=list)
    logo_url: Optional[str] = None

    @field_validator(*PRODUCT_TEXT_FIELDS, mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _coerce_text(value)


class LineSheetProject(CatalogModel):
    """A named, ordered collection of products plus header details."""

    id: str = Field(default_factory=new_id)
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    products: list[Product] = Field(default_factory=list)
    designer_name: str = ""
    collection: str = ""
    phone: str = ""
    email: str = ""
    logo_url: str = ""

    @field_validator("designer_name", "collection", "phone", "email", "logo_url", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _coerce_text(value)

    def find_product(self, product_id: str) -> Optional[Product]:
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def to_document(self) -> dict[str, Any]:
        """Return the project as a store document (camelCase keys)."""

        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "LineSheetProject":
        return cls.model_validate({**data, "id": doc_id})


class ProjectDetailsUpdate(CatalogModel):
    """Partial update of a project's header fields."""

    name: Optional[str] = None
    designer_name: Optional[str] = None
    collection: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("phone", mode="before")
    @classmethod
    def coerce_phone(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def changes(self) -> dict[str, Any]:
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class ProductUpdate(CatalogModel):
    """Partial update of a product's text fields. Images are not editable here."""

    product_code: Optional[str] = None
    product_name: Optional[str] = None
    content: Optional[str] = None
    size: Optional[str] = None
    price: Optional[str] = None
    tax: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator(*PRODUCT_TEXT_FIELDS, mode="before")
    @classmethod
    def coerce_text(cls, value):
        if value is None:
            return None
        return _coerce_text(value)

    def changes(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in CLEARABLE_PRODUCT_FIELDS
        }
