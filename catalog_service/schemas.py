# catalog_service/schemas.py

"""
Pydantic schemas for the Catalog Service API.
These define the data structures for incoming requests and outgoing responses,
ensuring data validation and clear API contracts.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .models import MAX_INTEGER


class KilogramOption(BaseModel):
    kilogram: float = Field(..., gt=0, description="Weight of this variant in kilograms.")
    price: float = Field(..., gt=0, description="Price of this variant.")


# Schema for creating a new product.
# Fields are optional at the schema level so the handler can report every
# missing one with a single "Missing required fields!" message.
# Used in POST /products/ endpoint.
class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, max_length=255, description="Name of the product.")
    rate: Optional[float] = Field(None, gt=0, description="Price of the product. Must be greater than 0.")
    stocks: Optional[int] = Field(None, ge=0, le=MAX_INTEGER, description="Units in stock. Must be non-negative.")
    category: Optional[int] = Field(None, ge=1, le=MAX_INTEGER, description="Identifier of the product's category.")
    kilogram_option: Optional[List[KilogramOption]] = Field(
        None, alias="kilogramOption", description="Selectable weight/price variants."
    )
    image: Optional[str] = Field(
        None, description="Image as a data URI, a base64 string or an http(s) URL."
    )


# Schema for updating an existing product.
# All fields are Optional, allowing partial updates (PATCH-like behavior for PUT).
# Used in PUT /products/{product_id} endpoint.
class ProductUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255, description="New name of the product.")
    rate: Optional[float] = Field(None, gt=0, description="New price of the product. Must be greater than 0.")
    stocks: Optional[int] = Field(None, ge=0, le=MAX_INTEGER, description="New stock count. Must be non-negative.")
    category: Optional[int] = Field(None, ge=1, le=MAX_INTEGER, description="New category identifier.")
    kilogram_option: Optional[List[KilogramOption]] = Field(
        None, alias="kilogramOption", min_length=1, description="Replacement weight/price variants."
    )
    image: Optional[str] = Field(None, description="Replacement image.")


class CategoryResponse(BaseModel):
    category_id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class _ProductFields(BaseModel):
    product_id: int = Field(..., description="Unique identifier of the product.")
    name: str
    rate: float
    stocks: int
    kilogram_option: List[KilogramOption] = Field(
        ...,
        validation_alias=AliasChoices("kilogram_option", "kilogramOption"),
        serialization_alias="kilogramOption",
    )
    public_id: str = Field(..., description="Identifier of the hosted image.")
    url: str = Field(..., description="Public URL of the hosted image.")
    created_at: Optional[datetime] = Field(None, description="Timestamp when the product was created.")
    updated_at: Optional[datetime] = Field(None, description="Timestamp when the product was last updated.")

    model_config = ConfigDict(from_attributes=True)


# Product with its category left as a bare identifier.
class ProductResponse(_ProductFields):
    category_id: int = Field(
        ...,
        validation_alias=AliasChoices("category_id", "category"),
        serialization_alias="category",
    )


# Product with its category resolved to the referenced entity.
class ProductDetailResponse(_ProductFields):
    category: CategoryResponse


# --- Response envelopes ---


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ProductCreatedResponse(MessageResponse):
    new_product: ProductResponse = Field(
        ..., validation_alias=AliasChoices("new_product", "newProduct"), serialization_alias="newProduct"
    )


class ProductListResponse(MessageResponse):
    products: List[ProductDetailResponse]
    products_doc_count: int = Field(
        ...,
        validation_alias=AliasChoices("products_doc_count", "productsDocCount"),
        serialization_alias="productsDocCount",
    )


class RecentProductsResponse(MessageResponse):
    products: List[ProductResponse]


class ProductDetailEnvelope(MessageResponse):
    product: ProductDetailResponse


class ErrorResponse(BaseModel):
    success: bool = False
    errors: List[str]
