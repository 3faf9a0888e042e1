from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple
import logging
import math

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.config import get_settings
from app.models.inventory import InventoryReason
from app.models.product import Product
from app.models.sale import PaymentMethod, Sale, SaleLine
from app.schemas.sale import (
    DailySales,
    DaySalesResponse,
    ProductSales,
    SaleLineCreate,
    SaleResponse,
    SaleStatistics,
    SalesSummary,
)
from app.services.alert_service import AlertEngine
from app.services.exceptions import NotFoundError, ValidationError
from app.services.stock_ledger import CENTS, StockLedger, require_cents
from app.utils.audit import audit
from app.utils.clock import day_start, today

logger = logging.getLogger(__name__)

settings = get_settings()


def money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def amount(value) -> Decimal:
    """Money from an aggregate column; NULL counts as zero, floats go through str."""
    return money(Decimal(str(value))) if value is not None else money(Decimal("0"))


class SaleLedger:
    """
    Turns sale requests into durable sale, stock and alert rows.

    STOCK CONSISTENCY:
    ==================
    A sale is created inside a single unit of work opened by the caller
    through ``TransactionCoordinator.run``:

    1. Every line is validated and its product resolved before anything is written
    2. The sale header and all lines are inserted
    3. ``StockLedger.apply`` decrements stock line by line, in request order,
       locking each product row (SELECT ... FOR UPDATE) before reading it
    4. ``AlertEngine.evaluate`` runs once per affected product

    Any error, including insufficient stock on the last line, rolls back the
    header, the lines, every stock change and every history or alert row.
    Unit prices are stored as given: they are a snapshot and are never
    re-read from the product.
    """

    def __init__(
        self,
        db: Session,
        tax_rate: Decimal = None,
        stock_ledger: StockLedger = None,
        alert_engine: AlertEngine = None,
    ):
        self.db = db
        self.tax_rate = Decimal(str(tax_rate if tax_rate is not None else settings.TAX_RATE))
        self.stock_ledger = stock_ledger or StockLedger(db)
        self.alert_engine = alert_engine or AlertEngine(db)

    def _validate_lines(self, lines: Sequence[SaleLineCreate]) -> None:
        if not lines:
            raise ValidationError("A sale must contain at least one line")

        for position, line in enumerate(lines, start=1):
            if line.quantity is None or Decimal(line.quantity) <= 0:
                raise ValidationError(f"Line {position}: quantity must be greater than 0")
            if line.unit_price is None or Decimal(line.unit_price) <= 0:
                raise ValidationError(f"Line {position}: unit price must be greater than 0")
            require_cents(line.quantity, f"Line {position}: quantity")
            require_cents(line.unit_price, f"Line {position}: unit price")
            if self.db.get(Product, line.product_id) is None:
                raise NotFoundError(f"Product with ID {line.product_id} not found")

    def create_sale(
        self,
        user_id: Optional[int],
        payment_method: PaymentMethod,
        lines: Sequence[SaleLineCreate],
    ) -> Sale:
        """
        Create a sale with its lines and apply its stock effects.

        Args:
            user_id: Issuing user
            payment_method: How the sale was paid
            lines: Requested lines (product_id, quantity, unit_price)

        Returns:
            The persisted sale with its lines

        Raises:
            ValidationError: Empty sale, or a non-positive quantity or price
                or one with more than 2 decimal places
            NotFoundError: A line references an unknown product
            ConsistencyError: A line exceeds the product's available stock
        """
        self._validate_lines(lines)

        sale_lines = []
        for line in lines:
            quantity = Decimal(line.quantity)
            unit_price = Decimal(line.unit_price)
            sale_lines.append(
                SaleLine(
                    product_id=line.product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    subtotal=money(quantity * unit_price),
                )
            )

        subtotal = money(sum((l.subtotal for l in sale_lines), Decimal("0")))
        tax = money(subtotal * self.tax_rate)

        sale = Sale(
            user_id=user_id,
            payment_method=PaymentMethod(payment_method),
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            lines=sale_lines,
        )
        self.db.add(sale)
        self.db.flush()

        affected = []
        for line in sale.lines:
            self.stock_ledger.apply(
                line.product_id, -line.quantity, InventoryReason.SALE, user_id
            )
            if line.product_id not in affected:
                affected.append(line.product_id)

        for product_id in affected:
            self.alert_engine.evaluate(product_id)

        logger.info(f"Sale #{sale.id} created with {len(sale.lines)} line(s), total {sale.total}")
        audit(
            "sale.created",
            sale_id=sale.id,
            user_id=user_id,
            total=sale.total,
            lines=len(sale.lines),
            payment_method=sale.payment_method.value,
        )

        return sale

    def get_sale(self, sale_id: int) -> Sale:
        sale = self.db.scalars(
            select(Sale).where(Sale.id == sale_id).options(selectinload(Sale.lines))
        ).first()
        if sale is None:
            raise NotFoundError(f"Sale with ID {sale_id} not found")
        return sale

    def get_sales(
        self,
        page: int = 1,
        page_size: int = 10,
        user_id: int = None,
        date_from: datetime = None,
        date_to: datetime = None,
    ) -> Tuple[List[Sale], int, int]:
        """
        Get paginated list of sales, newest first.

        Returns:
            Tuple of (sales list, total count, total pages)
        """
        query = self.db.query(Sale).options(selectinload(Sale.lines))

        if user_id:
            query = query.filter(Sale.user_id == user_id)
        if date_from:
            query = query.filter(Sale.created_at >= date_from)
        if date_to:
            query = query.filter(Sale.created_at <= date_to)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        sales = query.order_by(Sale.id.desc()).offset(offset).limit(page_size).all()

        return sales, total, total_pages

    def delete_sale(self, sale_id: int, user_id: Optional[int]) -> Sale:
        """
        Delete a sale and put its quantities back in stock.

        Each line's quantity is returned through the stock ledger (reason
        ``return``) before the sale and its lines are removed. Lines whose
        product has since been deleted are skipped.
        """
        sale = self.get_sale(sale_id)

        affected = []
        for line in sale.lines:
            if line.product_id is None:
                continue
            self.stock_ledger.apply(
                line.product_id, line.quantity, InventoryReason.RETURN, user_id
            )
            if line.product_id not in affected:
                affected.append(line.product_id)

        for product_id in affected:
            self.alert_engine.evaluate(product_id)

        self.db.delete(sale)
        self.db.flush()

        logger.info(f"Sale #{sale_id} deleted by user #{user_id}")
        audit("sale.deleted", sale_id=sale_id, user_id=user_id, total=sale.total)

        return sale

    # Reporting

    def _in_period(self, stmt, date_from: date = None, date_to: date = None):
        """Restrict ``stmt`` to sales between two calendar days, both inclusive."""
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to")
        if date_from:
            stmt = stmt.where(Sale.created_at >= day_start(date_from))
        if date_to:
            stmt = stmt.where(Sale.created_at < day_start(date_to + timedelta(days=1)))
        return stmt

    def _product_sales(
        self, limit: int, by_revenue: bool, date_from: date = None, date_to: date = None
    ) -> List[ProductSales]:
        units = func.sum(SaleLine.quantity).label("units_sold")
        revenue = func.sum(SaleLine.subtotal).label("total_sold")
        stmt = (
            select(Product.id, Product.name, Product.barcode, units, revenue)
            .join(SaleLine, SaleLine.product_id == Product.id)
            .join(Sale, Sale.id == SaleLine.sale_id)
            .group_by(Product.id, Product.name, Product.barcode)
            .order_by((revenue if by_revenue else units).desc(), Product.id)
            .limit(limit)
        )
        return [
            ProductSales(
                product_id=row.id,
                name=row.name,
                barcode=row.barcode,
                units_sold=amount(row.units_sold),
                total_sold=amount(row.total_sold),
            )
            for row in self.db.execute(self._in_period(stmt, date_from, date_to))
        ]

    def statistics(self, date_from: date = None, date_to: date = None) -> SaleStatistics:
        """
        Sales figures for a period (all time when no bounds are given).

        Per-day figures cover the 30 most recent days with sales in the
        period; best sellers are the 10 products with the most units sold.
        """
        summary = self.db.execute(
            self._in_period(
                select(
                    func.count(Sale.id).label("sales"),
                    func.sum(Sale.total).label("total"),
                    func.avg(Sale.total).label("average"),
                    func.min(Sale.total).label("smallest"),
                    func.max(Sale.total).label("largest"),
                ),
                date_from,
                date_to,
            )
        ).one()

        day = func.date(Sale.created_at).label("day")
        per_day = self.db.execute(
            self._in_period(
                select(day, func.count(Sale.id).label("sales"), func.sum(Sale.total).label("total"))
                .group_by(day)
                .order_by(day.desc())
                .limit(30),
                date_from,
                date_to,
            )
        ).all()

        return SaleStatistics(
            summary=SalesSummary(
                sales=summary.sales,
                total=amount(summary.total),
                average=amount(summary.average),
                smallest=None if summary.smallest is None else amount(summary.smallest),
                largest=None if summary.largest is None else amount(summary.largest),
            ),
            per_day=[DailySales(day=row.day, sales=row.sales, total=amount(row.total)) for row in per_day],
            top_products=self._product_sales(10, by_revenue=False, date_from=date_from, date_to=date_to),
        )

    def top_products(self, limit: int = 10) -> List[ProductSales]:
        """Products with the highest revenue across all sales."""
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        return self._product_sales(limit, by_revenue=True)

    def sales_of_day(self, day: date = None) -> DaySalesResponse:
        """Every sale registered on ``day`` (today by default), newest first."""
        day = day or today()
        sales = self.db.scalars(
            self._in_period(select(Sale), day, day)
            .options(selectinload(Sale.lines))
            .order_by(Sale.created_at.desc(), Sale.id.desc())
        ).all()

        return DaySalesResponse(
            day=day,
            sales=len(sales),
            total=amount(sum((s.total for s in sales), Decimal("0"))),
            items=[SaleResponse.model_validate(s) for s in sales],
        )
