import logging

from app.config import get_settings
from app.database import coordinator
from app.services.alert_service import AlertEngine
from app.services.exceptions import DomainError
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

settings = get_settings()


@celery_app.task(bind=True, name="scan_expiring_products")
def scan_expiring_products(self, days: int = None) -> dict:
    """
    Background task raising expiry alerts for products close to expiring.

    Runs daily from the beat schedule and on demand from the alerts API.
    The scan is one unit of work: either every new alert is stored or none.

    Args:
        days: Look-ahead window in days (defaults to EXPIRY_WINDOW_DAYS)

    Returns:
        Dictionary with the number of alerts created
    """
    days = settings.EXPIRY_WINDOW_DAYS if days is None else days
    logger.info(f"Scanning for products expiring within {days} day(s)")

    try:
        created = coordinator.run(lambda tx: [a.id for a in AlertEngine(tx).scan_expiring(days)])
    except DomainError as e:
        logger.error(f"Expiry scan failed: {e.message}")
        raise self.retry(exc=e, countdown=60, max_retries=3)

    logger.info(f"Expiry scan finished, {len(created)} alert(s) created")
    return {"status": "success", "days": days, "alerts_created": len(created), "alert_ids": created}
