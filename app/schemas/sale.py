from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from app.models.sale import PaymentMethod


class SaleLineCreate(BaseModel):
    """One requested line of a sale."""
    product_id: int = Field(..., gt=0, description="ID of the product sold")
    quantity: Decimal = Field(..., gt=0, decimal_places=2, description="Quantity sold")
    unit_price: Decimal = Field(..., gt=0, decimal_places=2, description="Unit price charged (snapshot)")


class SaleCreate(BaseModel):
    """Schema for registering a sale."""
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, description="Payment method")
    lines: list[SaleLineCreate] = Field(..., min_length=1, description="Sale lines")


class SaleLineResponse(BaseModel):
    """Schema for a stored sale line."""
    id: int
    product_id: Optional[int]
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleResponse(BaseModel):
    """Schema for a sale with its lines."""
    id: int
    created_at: datetime
    user_id: Optional[int]
    payment_method: PaymentMethod
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    lines: list[SaleLineResponse]

    model_config = ConfigDict(from_attributes=True)


class SaleListResponse(BaseModel):
    """Schema for paginated sale list response."""
    items: list[SaleResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class SalesSummary(BaseModel):
    """Totals over the sales of a period."""
    sales: int
    total: Decimal
    average: Decimal
    smallest: Optional[Decimal]
    largest: Optional[Decimal]


class DailySales(BaseModel):
    day: date
    sales: int
    total: Decimal


class ProductSales(BaseModel):
    """Units and revenue of one product across sale lines."""
    product_id: int
    name: str
    barcode: str
    units_sold: Decimal
    total_sold: Decimal


class SaleStatistics(BaseModel):
    """Sales summary, the last 30 days with sales and the best sellers by units."""
    summary: SalesSummary
    per_day: list[DailySales]
    top_products: list[ProductSales]


class DaySalesResponse(BaseModel):
    """Every sale of one day with the day's totals."""
    day: date
    sales: int
    total: Decimal
    items: list[SaleResponse]
