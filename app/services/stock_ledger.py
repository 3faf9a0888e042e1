from decimal import Decimal
import logging

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.models.inventory import InventoryHistory, InventoryReason
from app.models.product import Product
from app.services.exceptions import (
    ConsistencyError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.utils.audit import audit

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def require_cents(value, label: str) -> Decimal:
    """
    Return ``value`` as a Decimal, rejecting anything finer than cents.

    Stock, quantities and prices are stored as NUMERIC(10, 2); a value the
    column would round must not reach the ledger. Trailing zeros are fine.
    """
    value = Decimal(str(value))
    if not value.is_finite() or value != value.quantize(CENTS):
        raise ValidationError(f"{label} must have at most 2 decimal places")
    return value


def lock_product(product_id: int) -> Select:
    """
    SELECT a product FOR UPDATE.

    The row lock serializes every mutator of the same product until the
    enclosing transaction ends, so the stock read below is never stale.
    ``populate_existing`` refreshes an instance already in the identity map.
    """
    return (
        select(Product)
        .where(Product.id == product_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


class StockLedger:
    """
    The single writer of ``Product.stock``.

    Each call locks the product row, checks that the resulting stock stays
    non-negative, updates it and appends one ``InventoryHistory`` row. It
    never commits: it must run inside a transaction opened by the
    ``TransactionCoordinator``, so a later failure in the same unit of work
    rolls the stock change back too.
    """

    def __init__(self, db: Session):
        self.db = db

    def apply(
        self,
        product_id: int,
        delta: Decimal,
        reason: InventoryReason,
        user_id: int = None,
    ) -> InventoryHistory:
        """
        Apply a signed stock change to a product.

        Args:
            product_id: Product to change
            delta: Signed quantity (negative for outgoing stock)
            reason: Cause recorded in the history row
            user_id: Acting user

        Returns:
            The appended history row

        Raises:
            NotFoundError: If the product doesn't exist
            ValidationError: If the change is zero or finer than cents
            ConsistencyError: If the change would leave stock negative
        """
        if not self.db.in_transaction():
            raise InternalError("Stock changes require an open transaction")

        delta = require_cents(delta, "Stock change")
        if delta == 0:
            raise ValidationError("Stock change must be non-zero")

        product = self.db.execute(lock_product(product_id)).scalar_one_or_none()
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")

        current = Decimal(product.stock)
        new_stock = current + delta
        if new_stock < 0:
            raise ConsistencyError(
                f"Insufficient stock for {product.name}. Available: {current}, requested: {-delta}"
            )

        product.stock = new_stock
        entry = InventoryHistory(
            product_id=product.id,
            change=delta,
            reason=InventoryReason(reason),
            user_id=user_id,
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(f"Stock of product #{product.id} changed {current} -> {new_stock} ({entry.reason.value})")
        audit(
            "stock.changed",
            product_id=product.id,
            change=delta,
            stock_before=current,
            stock_after=new_stock,
            reason=entry.reason.value,
            user_id=user_id,
        )

        return entry
