from datetime import date, datetime
from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from app.api.deps import get_current_user_id
from app.database import TransactionCoordinator, get_coordinator
from app.services.product_service import invalidate_products
from app.services.sale_service import SaleLedger
from app.schemas.sale import (
    DaySalesResponse,
    ProductSales,
    SaleCreate,
    SaleListResponse,
    SaleResponse,
    SaleStatistics,
)

router = APIRouter(prefix="/ventas", tags=["Sales"])


@router.post(
    "/",
    response_model=SaleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a sale",
    description="""
    Register a sale with one or more lines.

    **Atomicity:**
    The sale header, its lines, the stock decrements, the inventory history
    rows and any low-stock alerts are written in a single transaction. Each
    product row is locked (SELECT ... FOR UPDATE) before its stock is checked,
    so concurrent sales can never oversell. If any line fails, nothing is stored.
    """
)
def create_sale(
    sale_data: SaleCreate,
    user_id: int = Depends(get_current_user_id),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """
    Create a sale.

    - **payment_method**: cash, card or other
    - **lines**: product_id, quantity (> 0) and unit_price (> 0) per line

    Errors: 400 invalid input, 404 unknown product, 409 insufficient stock.
    """
    sale = coordinator.run(
        lambda tx: SaleResponse.model_validate(
            SaleLedger(tx).create_sale(user_id, sale_data.payment_method, sale_data.lines)
        )
    )
    invalidate_products(line.product_id for line in sale.lines)
    return sale


@router.get(
    "/",
    response_model=SaleListResponse,
    summary="List sales",
    description="Get a paginated list of sales, newest first."
)
def list_sales(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    user_id: Optional[int] = Query(None, ge=1, description="Filter by issuing user"),
    date_from: Optional[datetime] = Query(None, description="Sales at or after this instant"),
    date_to: Optional[datetime] = Query(None, description="Sales at or before this instant"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Get paginated list of sales."""
    def _list(tx):
        sales, total, total_pages = SaleLedger(tx).get_sales(page, page_size, user_id, date_from, date_to)
        return SaleListResponse(
            items=[SaleResponse.model_validate(s) for s in sales],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    return coordinator.run(_list)


@router.get(
    "/estadisticas",
    response_model=SaleStatistics,
    summary="Sales statistics",
    description="Totals, per-day figures and best sellers for a period. Both dates are inclusive."
)
def sales_statistics(
    date_from: Optional[date] = Query(None, description="First day of the period"),
    date_to: Optional[date] = Query(None, description="Last day of the period"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: SaleLedger(tx).statistics(date_from, date_to))


@router.get(
    "/top-productos",
    response_model=list[ProductSales],
    summary="Top products",
    description="Products with the highest revenue across all sales."
)
def top_products(
    limit: int = Query(10, ge=1, le=100, description="Number of products"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: SaleLedger(tx).top_products(limit))


@router.get(
    "/del-dia",
    response_model=DaySalesResponse,
    summary="Sales of the day",
    description="Every sale of one day (today by default) with the day's count and total."
)
def sales_of_day(
    day: Optional[date] = Query(None, description="Day to report, defaults to today"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: SaleLedger(tx).sales_of_day(day))


@router.get(
    "/{sale_id}",
    response_model=SaleResponse,
    summary="Get sale by ID",
    description="Get a sale with its lines."
)
def get_sale(
    sale_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Get a sale by ID."""
    return coordinator.run(lambda tx: SaleResponse.model_validate(SaleLedger(tx).get_sale(sale_id)))


@router.delete(
    "/{sale_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a sale",
    description="Delete a sale and return its quantities to stock (recorded as returns)."
)
def delete_sale(
    sale_id: int,
    user_id: int = Depends(get_current_user_id),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Delete a sale, restoring stock in the same transaction."""
    product_ids = coordinator.run(
        lambda tx: [line.product_id for line in SaleLedger(tx).delete_sale(sale_id, user_id).lines]
    )
    invalidate_products(product_ids)
    return None
