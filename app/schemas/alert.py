from pydantic import BaseModel, ConfigDict
from datetime import date, datetime

from app.models.alert import AlertKind


class AlertResponse(BaseModel):
    """Schema for alert response."""
    id: int
    product_id: int
    kind: AlertKind
    message: str
    created_at: datetime
    acknowledged: bool

    model_config = ConfigDict(from_attributes=True)


class AlertListResponse(BaseModel):
    """Schema for paginated alert list response."""
    items: list[AlertResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ExpiryScanResponse(BaseModel):
    task_id: str
    days: int


class AlertTotals(BaseModel):
    total: int
    acknowledged: int
    pending: int
    expiry: int
    low_stock: int


class DailyAlerts(BaseModel):
    day: date
    total: int
    expiry: int
    low_stock: int


class ProductAlerts(BaseModel):
    product_id: int
    name: str
    total: int
    expiry: int
    low_stock: int


class AlertStatistics(BaseModel):
    """Alert counts over the last ``days`` days."""
    days: int
    totals: AlertTotals
    per_day: list[DailyAlerts]
    top_products: list[ProductAlerts]
