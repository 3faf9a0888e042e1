from datetime import date, timedelta
from decimal import Decimal
from typing import List, Tuple
import math

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from app.models.inventory import InventoryHistory, InventoryReason
from app.models.product import Product
from app.schemas.inventory import (
    InventoryHistoryResponse,
    InventoryStatistics,
    MovementTotals,
    ProductMovements,
)
from app.services.alert_service import AlertEngine
from app.services.exceptions import ValidationError
from app.services.sale_service import amount
from app.services.stock_ledger import StockLedger
from app.utils.clock import day_start


class InventoryService:
    """Manual stock adjustments, the inventory history and its statistics."""

    def __init__(self, db: Session, stock_ledger: StockLedger = None, alert_engine: AlertEngine = None):
        self.db = db
        self.stock_ledger = stock_ledger or StockLedger(db)
        self.alert_engine = alert_engine or AlertEngine(db)

    def adjust(
        self,
        product_id: int,
        change: Decimal,
        reason: InventoryReason = InventoryReason.ADJUSTMENT,
        user_id: int = None,
    ) -> InventoryHistory:
        """
        Apply a manual stock change (purchase, adjustment or return).

        Sales are excluded: they only change stock through the sale ledger.
        """
        reason = InventoryReason(reason)
        if reason is InventoryReason.SALE:
            raise ValidationError("Sale stock changes must be registered as sales")

        entry = self.stock_ledger.apply(product_id, change, reason, user_id)
        self.alert_engine.evaluate(product_id)
        return entry

    def history(
        self,
        page: int = 1,
        page_size: int = 10,
        product_id: int = None,
        reason: InventoryReason = None,
        direction: str = None,
    ) -> Tuple[List[InventoryHistory], int, int]:
        """
        Get paginated inventory history, newest first.

        Args:
            direction: "in" for positive changes, "out" for negative ones

        Returns:
            Tuple of (history rows, total count, total pages)
        """
        query = self.db.query(InventoryHistory)

        if product_id:
            query = query.filter(InventoryHistory.product_id == product_id)
        if reason:
            query = query.filter(InventoryHistory.reason == reason)
        if direction == "in":
            query = query.filter(InventoryHistory.change > 0)
        elif direction == "out":
            query = query.filter(InventoryHistory.change < 0)
        elif direction is not None:
            raise ValidationError("direction must be 'in' or 'out'")

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        rows = query.order_by(InventoryHistory.id.desc()).offset(offset).limit(page_size).all()

        return rows, total, total_pages

    def _filtered(self, stmt, product_id: int = None, date_from: date = None, date_to: date = None):
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to")
        if product_id:
            stmt = stmt.where(InventoryHistory.product_id == product_id)
        if date_from:
            stmt = stmt.where(InventoryHistory.created_at >= day_start(date_from))
        if date_to:
            stmt = stmt.where(InventoryHistory.created_at < day_start(date_to + timedelta(days=1)))
        return stmt

    def statistics(
        self,
        product_id: int = None,
        date_from: date = None,
        date_to: date = None,
    ) -> InventoryStatistics:
        """
        Stock movement figures for a period, both bounds inclusive.

        ``total_in`` sums the positive changes and ``total_out`` the absolute
        value of the negative ones, overall and per product.
        """
        change = InventoryHistory.change
        total_in = func.sum(case((change > 0, change), else_=0)).label("total_in")
        total_out = func.sum(case((change < 0, -change), else_=0)).label("total_out")
        filters = (product_id, date_from, date_to)

        totals = self.db.execute(
            self._filtered(
                select(
                    func.count(InventoryHistory.id).label("movements"),
                    total_in,
                    total_out,
                    func.max(InventoryHistory.created_at).label("last_movement_at"),
                ),
                *filters,
            )
        ).one()

        by_reason = {reason.value: 0 for reason in InventoryReason}
        reason_rows = self.db.execute(
            self._filtered(
                select(InventoryHistory.reason, func.count(InventoryHistory.id))
                .group_by(InventoryHistory.reason),
                *filters,
            )
        )
        for reason, movements in reason_rows:
            by_reason[InventoryReason(reason).value] = movements

        per_product = self.db.execute(
            self._filtered(
                select(
                    Product.id,
                    Product.name,
                    func.count(InventoryHistory.id).label("movements"),
                    total_in,
                    total_out,
                )
                .join(InventoryHistory, InventoryHistory.product_id == Product.id)
                .group_by(Product.id, Product.name)
                .order_by(Product.name, Product.id),
                *filters,
            )
        ).all()

        recent = self.db.scalars(
            self._filtered(select(InventoryHistory), *filters)
            .order_by(InventoryHistory.id.desc())
            .limit(10)
        ).all()

        return InventoryStatistics(
            totals=MovementTotals(
                movements=totals.movements,
                total_in=amount(totals.total_in),
                total_out=amount(totals.total_out),
                by_reason=by_reason,
                last_movement_at=totals.last_movement_at,
            ),
            per_product=[
                ProductMovements(
                    product_id=row.id,
                    name=row.name,
                    movements=row.movements,
                    total_in=amount(row.total_in),
                    total_out=amount(row.total_out),
                )
                for row in per_product
            ],
            recent=[InventoryHistoryResponse.model_validate(entry) for entry in recent],
        )
