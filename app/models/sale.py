from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
)
from sqlalchemy.orm import relationship
import enum

from app.database import Base
from app.utils.clock import utcnow


class PaymentMethod(str, enum.Enum):
    """Enum for how a sale was paid."""
    CASH = "cash"
    CARD = "card"
    OTHER = "other"


class Sale(Base):
    """
    Sale header. Created once, atomically, together with its lines.

    Attributes:
        id: Unique identifier for the sale
        created_at: When the sale was registered
        user_id: Issuing user (supplied by the auth layer)
        payment_method: How the sale was paid
        subtotal: Sum of line subtotals
        tax: subtotal * tax rate
        total: subtotal + tax
    """
    __tablename__ = "ventas"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    lines = relationship(
        "SaleLine",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SaleLine.id",
    )

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, lines={len(self.lines)})>"


class SaleLine(Base):
    """
    One product quantity/price entry within a sale.

    ``unit_price`` is a snapshot taken when the sale is created; later changes
    to the product's sale price never touch it.
    """
    __tablename__ = "detalle_venta"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("ventas.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("productos.id", ondelete="SET NULL"), nullable=True, index=True)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    sale = relationship("Sale", back_populates="lines")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_line_quantity_positive"),
        CheckConstraint("unit_price > 0", name="check_line_unit_price_positive"),
    )

    def __repr__(self):
        return f"<SaleLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
