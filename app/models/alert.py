from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, Text
import enum

from app.database import Base
from app.utils.clock import utcnow


class AlertKind(str, enum.Enum):
    """Enum for alert kinds."""
    EXPIRY = "expiry"
    LOW_STOCK = "low_stock"


class Alert(Base):
    """
    System-generated notice about a product. Only ``acknowledged`` ever changes.
    """
    __tablename__ = "alertas"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("productos.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(Enum(AlertKind), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    acknowledged = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Alert(id={self.id}, product_id={self.product_id}, kind='{self.kind}')>"
