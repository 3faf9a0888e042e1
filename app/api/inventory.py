from datetime import date
from fastapi import APIRouter, Depends, Query, status
from typing import Literal, Optional

from app.api.deps import get_current_user_id
from app.database import TransactionCoordinator, get_coordinator
from app.models.inventory import InventoryReason
from app.services.inventory_service import InventoryService
from app.services.product_service import invalidate_products
from app.schemas.inventory import (
    InventoryHistoryListResponse,
    InventoryHistoryResponse,
    InventoryStatistics,
    StockAdjustmentCreate,
)

router = APIRouter(prefix="/inventario", tags=["Inventory"])


@router.post(
    "/ajustes",
    response_model=InventoryHistoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Adjust stock",
    description="Apply a signed stock change (purchase, adjustment or return). Stock can never go negative."
)
def create_adjustment(
    adjustment: StockAdjustmentCreate,
    user_id: int = Depends(get_current_user_id),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Register a manual stock movement and its history row."""
    entry = coordinator.run(
        lambda tx: InventoryHistoryResponse.model_validate(
            InventoryService(tx).adjust(
                adjustment.product_id, adjustment.change, adjustment.reason, user_id
            )
        )
    )
    invalidate_products([adjustment.product_id])
    return entry


@router.get(
    "/historial",
    response_model=InventoryHistoryListResponse,
    summary="Inventory history",
    description="Paginated stock movements, newest first."
)
def list_history(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    product_id: Optional[int] = Query(None, ge=1, description="Filter by product"),
    reason: Optional[InventoryReason] = Query(None, description="Filter by reason"),
    direction: Optional[Literal["in", "out"]] = Query(None, description="in = positive, out = negative changes"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Get paginated inventory history."""
    def _list(tx):
        rows, total, total_pages = InventoryService(tx).history(
            page, page_size, product_id, reason, direction
        )
        return InventoryHistoryListResponse(
            items=[InventoryHistoryResponse.model_validate(r) for r in rows],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    return coordinator.run(_list)


@router.get(
    "/estadisticas",
    response_model=InventoryStatistics,
    summary="Inventory statistics",
    description="Movement totals, a per-product summary and the latest movements. Both dates are inclusive."
)
def inventory_statistics(
    product_id: Optional[int] = Query(None, ge=1, description="Only this product"),
    date_from: Optional[date] = Query(None, description="First day of the period"),
    date_to: Optional[date] = Query(None, description="Last day of the period"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: InventoryService(tx).statistics(product_id, date_from, date_to))
