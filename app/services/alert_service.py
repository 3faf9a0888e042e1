from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
import logging
import math

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.alert import Alert, AlertKind
from app.models.product import Product
from app.schemas.alert import AlertStatistics, AlertTotals, DailyAlerts, ProductAlerts
from app.services.exceptions import NotFoundError, ValidationError
from app.utils.audit import audit
from app.utils.clock import day_start, today

logger = logging.getLogger(__name__)

settings = get_settings()


class AlertEngine:
    """
    Raises and serves product alerts.

    Low-stock alerts are event driven: ``evaluate`` runs right after a stock
    change, inside the same transaction, so the alert commits or rolls back
    with the change that caused it. Repeated low-stock alerts for the same
    product are not deduplicated.

    Expiry depends on the calendar rather than on a mutation, so it is only
    evaluated on read: ``expiring_products`` answers the query and
    ``scan_expiring`` (run periodically by Celery) materialises the alerts.
    """

    def __init__(self, db: Session, low_stock_threshold: Decimal = None):
        self.db = db
        self.low_stock_threshold = Decimal(
            str(low_stock_threshold if low_stock_threshold is not None else settings.LOW_STOCK_THRESHOLD)
        )

    def evaluate(self, product_id: int) -> Optional[Alert]:
        """
        Inspect a product's current stock and raise a low-stock alert if needed.

        Returns:
            The created alert, or None if stock is at or above the threshold
        """
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")

        if Decimal(product.stock) >= self.low_stock_threshold:
            return None

        alert = Alert(
            product_id=product.id,
            kind=AlertKind.LOW_STOCK,
            message=(
                f"Low stock: {product.stock} units "
                f"(recommended minimum: {self.low_stock_threshold})"
            ),
            acknowledged=False,
        )
        self.db.add(alert)
        self.db.flush()

        logger.info(f"Low stock alert #{alert.id} raised for product #{product.id}")
        audit("alert.raised", alert_id=alert.id, product_id=product.id, kind=alert.kind.value)
        return alert

    def expiring_products(self, days: int = None, as_of: date = None) -> List[Product]:
        """
        Products whose expiry date falls on or before ``as_of + days``.

        Already expired products are included. Results are ordered soonest first.
        """
        days = settings.EXPIRY_WINDOW_DAYS if days is None else days
        if days < 0:
            raise ValidationError("days must be non-negative")
        limit = (as_of or today()) + timedelta(days=days)

        return list(
            self.db.scalars(
                select(Product)
                .where(Product.expiry_date.is_not(None), Product.expiry_date <= limit)
                .order_by(Product.expiry_date, Product.id)
            )
        )

    def scan_expiring(self, days: int = None, as_of: date = None) -> List[Alert]:
        """
        Create one expiry alert per expiring product lacking a pending one.

        Returns:
            The alerts created by this scan
        """
        as_of = as_of or today()
        pending = set(
            self.db.scalars(
                select(Alert.product_id).where(
                    Alert.kind == AlertKind.EXPIRY, Alert.acknowledged.is_(False)
                )
            )
        )

        created = []
        for product in self.expiring_products(days, as_of):
            if product.id in pending:
                continue
            remaining = (product.expiry_date - as_of).days
            if remaining < 0:
                message = f"Product expired {-remaining} day(s) ago"
            else:
                message = f"Product expires in {remaining} day(s)"
            alert = Alert(product_id=product.id, kind=AlertKind.EXPIRY, message=message)
            self.db.add(alert)
            created.append(alert)

        self.db.flush()
        for alert in created:
            audit("alert.raised", alert_id=alert.id, product_id=alert.product_id, kind=alert.kind.value)
        logger.info(f"Expiry scan created {len(created)} alert(s)")
        return created

    def get_alert(self, alert_id: int) -> Alert:
        alert = self.db.get(Alert, alert_id)
        if alert is None:
            raise NotFoundError(f"Alert with ID {alert_id} not found")
        return alert

    def acknowledge(self, alert_id: int) -> Alert:
        """Flip an alert to acknowledged. Acknowledging twice is rejected."""
        alert = self.get_alert(alert_id)
        if alert.acknowledged:
            raise ValidationError("Alert is already acknowledged")

        alert.acknowledged = True
        self.db.flush()
        audit("alert.acknowledged", alert_id=alert.id, product_id=alert.product_id)
        return alert

    def delete_alert(self, alert_id: int) -> Alert:
        alert = self.get_alert(alert_id)
        self.db.delete(alert)
        self.db.flush()

        logger.info(f"Alert #{alert_id} ({alert.kind.value}) deleted")
        audit("alert.deleted", alert_id=alert_id, product_id=alert.product_id, kind=alert.kind.value)
        return alert

    def statistics(self, days: int = 30) -> AlertStatistics:
        """
        Alert counts for the last ``days`` days, today included.

        Per-day figures and the ten products with the most alerts cover the
        same window.
        """
        if days < 0:
            raise ValidationError("days must be zero or positive")
        since = day_start(today() - timedelta(days=days))

        expiry = func.coalesce(func.sum(case((Alert.kind == AlertKind.EXPIRY, 1), else_=0)), 0)
        low_stock = func.coalesce(func.sum(case((Alert.kind == AlertKind.LOW_STOCK, 1), else_=0)), 0)
        acknowledged = func.coalesce(func.sum(case((Alert.acknowledged.is_(True), 1), else_=0)), 0)
        total = func.count(Alert.id)

        totals = self.db.execute(
            select(
                total.label("total"),
                acknowledged.label("acknowledged"),
                expiry.label("expiry"),
                low_stock.label("low_stock"),
            ).where(Alert.created_at >= since)
        ).one()

        day = func.date(Alert.created_at).label("day")
        per_day = self.db.execute(
            select(day, total.label("total"), expiry.label("expiry"), low_stock.label("low_stock"))
            .where(Alert.created_at >= since)
            .group_by(day)
            .order_by(day.desc())
        ).all()

        top_products = self.db.execute(
            select(
                Product.id,
                Product.name,
                total.label("total"),
                expiry.label("expiry"),
                low_stock.label("low_stock"),
            )
            .join(Alert, Alert.product_id == Product.id)
            .where(Alert.created_at >= since)
            .group_by(Product.id, Product.name)
            .order_by(total.desc(), Product.id)
            .limit(10)
        ).all()

        return AlertStatistics(
            days=days,
            totals=AlertTotals(
                total=totals.total,
                acknowledged=int(totals.acknowledged),
                pending=totals.total - int(totals.acknowledged),
                expiry=int(totals.expiry),
                low_stock=int(totals.low_stock),
            ),
            per_day=[
                DailyAlerts(day=row.day, total=row.total, expiry=int(row.expiry), low_stock=int(row.low_stock))
                for row in per_day
            ],
            top_products=[
                ProductAlerts(
                    product_id=row.id,
                    name=row.name,
                    total=row.total,
                    expiry=int(row.expiry),
                    low_stock=int(row.low_stock),
                )
                for row in top_products
            ],
        )

    def list_alerts(
        self,
        page: int = 1,
        page_size: int = 10,
        pending_only: bool = False,
        kind: AlertKind = None,
    ) -> Tuple[List[Alert], int, int]:
        """
        Get paginated list of alerts, newest first.

        Returns:
            Tuple of (alerts list, total count, total pages)
        """
        query = self.db.query(Alert)

        if pending_only:
            query = query.filter(Alert.acknowledged.is_(False))
        if kind:
            query = query.filter(Alert.kind == kind)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        alerts = query.order_by(Alert.id.desc()).offset(offset).limit(page_size).all()

        return alerts, total, total_pages
