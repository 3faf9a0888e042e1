from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
)
import enum

from app.database import Base
from app.utils.clock import utcnow


class UnitOfMeasure(str, enum.Enum):
    """Enum for the unit a product's stock is counted in."""
    PIECE = "piece"
    KG = "kg"
    LITER = "liter"
    OTHER = "other"


class Product(Base):
    """
    Product model representing items available for sale.

    Catalog fields are maintained by catalog management. ``stock`` is only
    written by the stock ledger once the product exists.

    Attributes:
        id: Unique identifier for the product
        name: Product name
        barcode: Unique barcode
        purchase_price: Cost price (non-negative)
        sale_price: Current sale price (non-negative)
        stock: On-hand quantity (non-negative decimal)
        unit: Unit of measure
        expiry_date: Optional expiry date
        supplier_id: Optional supplier reference
        category_id: Optional category reference
    """
    __tablename__ = "productos"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    barcode = Column(String(50), nullable=False, unique=True)
    purchase_price = Column(Numeric(10, 2), nullable=False)
    sale_price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Numeric(10, 2), nullable=False, default=0)
    unit = Column(Enum(UnitOfMeasure), nullable=False, default=UnitOfMeasure.PIECE)
    expiry_date = Column(Date, nullable=True, index=True)
    supplier_id = Column(Integer, nullable=True, index=True)
    category_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint("purchase_price >= 0", name="check_purchase_price_non_negative"),
        CheckConstraint("sale_price >= 0", name="check_sale_price_non_negative"),
        CheckConstraint("stock >= 0", name="check_stock_non_negative"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
