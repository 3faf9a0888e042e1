from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)

from app.database import Base


class Offer(Base):
    """
    Time-bounded percentage discount campaign.

    Attributes:
        id: Unique identifier
        name: Unique offer name
        description: Free text
        discount_pct: Discount percentage, 0 < pct <= 100
        start_date: First day the offer applies
        end_date: Last day the offer applies
        active: Manual on/off switch
    """
    __tablename__ = "ofertas"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    discount_pct = Column(Numeric(5, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "discount_pct > 0 AND discount_pct <= 100", name="check_discount_pct_range"
        ),
        CheckConstraint("start_date <= end_date", name="check_offer_dates_ordered"),
    )

    def __repr__(self):
        return f"<Offer(id={self.id}, name='{self.name}', active={self.active})>"


class ProductOffer(Base):
    """
    Many-to-many association between products and offers.

    Deleting a product drops its links; an offer cannot be deleted while linked.
    """
    __tablename__ = "producto_oferta"

    product_id = Column(Integer, ForeignKey("productos.id", ondelete="CASCADE"), primary_key=True)
    offer_id = Column(Integer, ForeignKey("ofertas.id", ondelete="RESTRICT"), primary_key=True)

    def __repr__(self):
        return f"<ProductOffer(product_id={self.product_id}, offer_id={self.offer_id})>"
