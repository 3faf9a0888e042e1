from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from app.models.product import UnitOfMeasure


class ProductBase(BaseModel):
    """Base schema for Product with common catalog attributes."""
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    barcode: str = Field(..., min_length=1, max_length=50, description="Unique barcode")
    purchase_price: Decimal = Field(..., ge=0, decimal_places=2, description="Purchase price (non-negative)")
    sale_price: Decimal = Field(..., ge=0, decimal_places=2, description="Sale price (non-negative)")
    unit: UnitOfMeasure = Field(default=UnitOfMeasure.PIECE, description="Unit of measure")
    expiry_date: Optional[date] = Field(None, description="Expiry date")
    supplier_id: Optional[int] = Field(None, gt=0, description="Supplier reference")
    category_id: Optional[int] = Field(None, gt=0, description="Category reference")


class ProductCreate(ProductBase):
    """Schema for creating a new product. Stock can only be set here."""
    stock: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2, description="Initial stock (must be non-negative)")


class ProductUpdate(BaseModel):
    """
    Schema for updating an existing product. All fields are optional.

    Stock is deliberately absent: it changes through sales and inventory adjustments.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    barcode: Optional[str] = Field(None, min_length=1, max_length=50)
    purchase_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    sale_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    unit: Optional[UnitOfMeasure] = None
    expiry_date: Optional[date] = None
    supplier_id: Optional[int] = Field(None, gt=0)
    category_id: Optional[int] = Field(None, gt=0)

    model_config = ConfigDict(extra="forbid")


class ProductResponse(ProductBase):
    """Schema for product response including all fields."""
    id: int
    stock: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
