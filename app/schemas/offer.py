from pydantic import BaseModel, Field, ConfigDict
from datetime import date
from decimal import Decimal
from typing import Optional


class OfferCreate(BaseModel):
    """Schema for creating an offer."""
    name: str = Field(..., min_length=1, max_length=150, description="Unique offer name")
    description: Optional[str] = Field(None, description="Offer description")
    discount_pct: Decimal = Field(..., gt=0, le=100, decimal_places=2, description="Discount percentage (0 < pct <= 100)")
    start_date: date = Field(..., description="First day of the offer")
    end_date: date = Field(..., description="Last day of the offer")
    active: bool = Field(default=True, description="Whether the offer is enabled")


class OfferUpdate(BaseModel):
    """Schema for updating an offer. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    discount_pct: Optional[Decimal] = Field(None, gt=0, le=100, decimal_places=2)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class OfferResponse(BaseModel):
    """Schema for offer response."""
    id: int
    name: str
    description: Optional[str]
    discount_pct: Decimal
    start_date: date
    end_date: date
    active: bool

    model_config = ConfigDict(from_attributes=True)


class OfferListResponse(BaseModel):
    """Schema for paginated offer list response."""
    items: list[OfferResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ProductOfferRequest(BaseModel):
    """Schema for assigning or unassigning a product to an offer."""
    product_id: int = Field(..., gt=0)
    offer_id: int = Field(..., gt=0)


class ProductOfferResponse(BaseModel):
    product_id: int
    offer_id: int

    model_config = ConfigDict(from_attributes=True)


class ActiveOffer(BaseModel):
    """An offer currently in force for a product, with the resulting price."""
    offer_id: int
    name: str
    description: Optional[str] = None
    discount_pct: Decimal
    start_date: date
    end_date: date
    sale_price: Decimal
    discounted_price: Decimal


class OfferProduct(BaseModel):
    """A product assigned to an offer, with the resulting price."""
    product_id: int
    name: str
    barcode: str
    sale_price: Decimal
    discounted_price: Decimal
