from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.models.inventory import InventoryReason


class StockAdjustmentCreate(BaseModel):
    """Schema for a manual stock adjustment."""
    product_id: int = Field(..., gt=0, description="Product to adjust")
    change: Decimal = Field(..., decimal_places=2, description="Signed stock change (non-zero)")
    reason: InventoryReason = Field(default=InventoryReason.ADJUSTMENT, description="Cause of the change")


class InventoryHistoryResponse(BaseModel):
    """Schema for an inventory history row."""
    id: int
    product_id: int
    change: Decimal
    reason: InventoryReason
    created_at: datetime
    user_id: Optional[int]

    model_config = ConfigDict(from_attributes=True)


class InventoryHistoryListResponse(BaseModel):
    """Schema for paginated inventory history."""
    items: list[InventoryHistoryResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class MovementTotals(BaseModel):
    """Aggregate stock movement over a period."""
    movements: int
    total_in: Decimal
    total_out: Decimal
    by_reason: dict[str, int]
    last_movement_at: Optional[datetime]


class ProductMovements(BaseModel):
    product_id: int
    name: str
    movements: int
    total_in: Decimal
    total_out: Decimal


class InventoryStatistics(BaseModel):
    """Movement totals, a per-product summary and the ten latest movements."""
    totals: MovementTotals
    per_product: list[ProductMovements]
    recent: list[InventoryHistoryResponse]
