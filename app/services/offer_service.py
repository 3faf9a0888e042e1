from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple
import logging
import math

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.offer import Offer, ProductOffer
from app.models.product import Product
from app.schemas.offer import ActiveOffer, OfferCreate, OfferProduct, OfferUpdate
from app.services.exceptions import ConflictError, NotFoundError, ValidationError
from app.utils.audit import audit
from app.utils.clock import today
from app.utils.updates import PartialUpdate

logger = logging.getLogger(__name__)

OFFER_UPDATE = PartialUpdate(
    Offer, {"name", "description", "discount_pct", "start_date", "end_date", "active"}
)


def discounted_price(sale_price: Decimal, discount_pct: Decimal) -> Decimal:
    """
    Price after applying a percentage discount, rounded to cents (half up).

    >>> discounted_price(Decimal("100"), Decimal("25"))
    Decimal('75.00')
    """
    factor = Decimal(1) - Decimal(str(discount_pct)) / Decimal(100)
    return (Decimal(str(sale_price)) * factor).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def lock_offer(offer_id: int, shared: bool = False) -> Select:
    """
    SELECT an offer FOR UPDATE, or FOR SHARE when ``shared``.

    Assignments take the shared lock and deletion the exclusive one, so an
    offer cannot disappear or be deactivated between the check and the insert.
    """
    return (
        select(Offer)
        .where(Offer.id == offer_id)
        .with_for_update(read=shared)
        .execution_options(populate_existing=True)
    )


def _check_offer_fields(discount_pct, start_date: date, end_date: date) -> None:
    if discount_pct is not None and not (0 < Decimal(discount_pct) <= 100):
        raise ValidationError("Discount percentage must be greater than 0 and at most 100")
    if start_date and end_date and start_date > end_date:
        raise ValidationError("Offer start date must not be after its end date")


class OfferService:
    """
    Offer management and product <-> offer assignment.

    Assignment rules:
    - the product and the offer must exist
    - the offer must be active at assignment time
    - a product can be assigned to the same offer only once

    Deactivating an offer later does NOT revoke existing assignments.
    Pricing never picks a single winning offer: ``active_offers_for``
    returns every offer currently in force, deepest discount first, and
    sales keep using the unit price supplied by the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    # Offers

    def create(self, offer_data: OfferCreate) -> Offer:
        _check_offer_fields(offer_data.discount_pct, offer_data.start_date, offer_data.end_date)

        existing = self.db.scalars(select(Offer).where(Offer.name == offer_data.name)).first()
        if existing:
            raise ConflictError(f"An offer named '{offer_data.name}' already exists")

        offer = Offer(**offer_data.model_dump())
        self.db.add(offer)
        self.db.flush()

        logger.info(f"Offer #{offer.id} '{offer.name}' created")
        return offer

    def get_by_id(self, offer_id: int, lock: bool = False, shared: bool = False) -> Offer:
        if lock:
            offer = self.db.execute(lock_offer(offer_id, shared)).scalar_one_or_none()
        else:
            offer = self.db.get(Offer, offer_id)
        if offer is None:
            raise NotFoundError(f"Offer with ID {offer_id} not found")
        return offer

    def get_all(
        self,
        page: int = 1,
        page_size: int = 10,
        active: bool = None,
    ) -> Tuple[List[Offer], int, int]:
        """
        Get paginated list of offers.

        Returns:
            Tuple of (offers list, total count, total pages)
        """
        query = self.db.query(Offer)

        if active is not None:
            query = query.filter(Offer.active.is_(active))

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        offers = query.order_by(Offer.start_date.desc(), Offer.id.desc()).offset(offset).limit(page_size).all()

        return offers, total, total_pages

    def update(self, offer_id: int, offer_data: OfferUpdate) -> Offer:
        """Update only the provided fields of an offer; a null description clears it."""
        offer = self.get_by_id(offer_id)
        changes = OFFER_UPDATE.changes(offer_data.model_dump(exclude_unset=True))

        _check_offer_fields(
            changes.get("discount_pct"),
            changes.get("start_date", offer.start_date),
            changes.get("end_date", offer.end_date),
        )
        if "name" in changes and changes["name"] != offer.name:
            clash = self.db.scalars(
                select(Offer).where(Offer.name == changes["name"], Offer.id != offer_id)
            ).first()
            if clash:
                raise ConflictError(f"An offer named '{changes['name']}' already exists")

        self.db.execute(OFFER_UPDATE.statement(offer_id, changes))
        self.db.refresh(offer)
        return offer

    def delete(self, offer_id: int) -> Offer:
        """
        Delete an offer that no product is assigned to.

        Raises:
            NotFoundError: If the offer doesn't exist
            ConflictError: While any product is still assigned to it
        """
        offer = self.get_by_id(offer_id, lock=True)

        assigned = self.assigned_count(offer_id)
        if assigned:
            raise ConflictError(
                f"Offer has {assigned} assigned product(s); unassign them before deleting it"
            )

        self.db.delete(offer)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # A link committed after the count still blocks the delete
            raise ConflictError("Offer still has assigned products") from exc
        logger.info(f"Offer #{offer_id} deleted")
        return offer

    def assigned_count(self, offer_id: int) -> int:
        return self.db.scalar(
            select(func.count()).select_from(ProductOffer).where(ProductOffer.offer_id == offer_id)
        )

    # Assignments

    def assign(self, product_id: int, offer_id: int) -> ProductOffer:
        """
        Assign a product to an active offer.

        Raises:
            NotFoundError: Missing product or offer
            ValidationError: The offer is inactive
            ConflictError: The product is already assigned to the offer
        """
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")

        offer = self.get_by_id(offer_id, lock=True, shared=True)
        if not offer.active:
            raise ValidationError("Cannot assign products to an inactive offer")

        if self.db.get(ProductOffer, (product_id, offer_id)) is not None:
            raise ConflictError("Product is already assigned to this offer")

        link = ProductOffer(product_id=product_id, offer_id=offer_id)
        self.db.add(link)
        self.db.flush()

        logger.info(f"Product #{product_id} assigned to offer #{offer_id}")
        audit("offer.assigned", product_id=product_id, offer_id=offer_id)
        return link

    def unassign(self, product_id: int, offer_id: int) -> ProductOffer:
        link = self.db.get(ProductOffer, (product_id, offer_id))
        if link is None:
            raise NotFoundError("Product-offer association not found")

        self.db.delete(link)
        self.db.flush()

        logger.info(f"Product #{product_id} unassigned from offer #{offer_id}")
        audit("offer.unassigned", product_id=product_id, offer_id=offer_id)
        return link

    def active_offers_for(self, product_id: int, on: date = None) -> List[ActiveOffer]:
        """
        Offers in force for a product on a given day (today by default).

        An offer is in force when it is active and ``start_date <= day <= end_date``.
        Each result carries the product's discounted price; results are ordered
        by discount percentage, highest first.
        """
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")

        day = on or today()
        offers = self.db.scalars(
            select(Offer)
            .join(ProductOffer, ProductOffer.offer_id == Offer.id)
            .where(
                ProductOffer.product_id == product_id,
                Offer.active.is_(True),
                Offer.start_date <= day,
                Offer.end_date >= day,
            )
            .order_by(Offer.discount_pct.desc(), Offer.id)
        ).all()

        return [
            ActiveOffer(
                offer_id=offer.id,
                name=offer.name,
                description=offer.description,
                discount_pct=offer.discount_pct,
                start_date=offer.start_date,
                end_date=offer.end_date,
                sale_price=product.sale_price,
                discounted_price=discounted_price(product.sale_price, offer.discount_pct),
            )
            for offer in offers
        ]

    def products_for(self, offer_id: int) -> List[OfferProduct]:
        """Products assigned to an offer with their discounted price."""
        offer = self.get_by_id(offer_id)
        products = self.db.scalars(
            select(Product)
            .join(ProductOffer, ProductOffer.product_id == Product.id)
            .where(ProductOffer.offer_id == offer_id)
            .order_by(Product.name)
        ).all()

        return [
            OfferProduct(
                product_id=product.id,
                name=product.name,
                barcode=product.barcode,
                sale_price=product.sale_price,
                discounted_price=discounted_price(product.sale_price, offer.discount_pct),
            )
            for product in products
        ]
