from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric
import enum

from app.database import Base
from app.utils.clock import utcnow


class InventoryReason(str, enum.Enum):
    """Enum for the cause of a stock change."""
    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


class InventoryHistory(Base):
    """
    Append-only audit row, one per stock-affecting operation.

    Attributes:
        id: Unique identifier
        product_id: Product whose stock changed
        change: Signed stock delta (stored as ``cambio``)
        reason: Why the stock changed
        created_at: When the change was applied
        user_id: Acting user
    """
    __tablename__ = "historial_inventario"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("productos.id", ondelete="CASCADE"), nullable=False, index=True)
    change = Column("cambio", Numeric(10, 2), nullable=False)
    reason = Column(Enum(InventoryReason), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    user_id = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<InventoryHistory(id={self.id}, product_id={self.product_id}, change={self.change})>"
