from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from app.database import TransactionCoordinator, get_coordinator
from app.models.alert import AlertKind
from app.services.alert_service import AlertEngine
from app.schemas.alert import (
    AlertListResponse,
    AlertResponse,
    AlertStatistics,
    ExpiryScanResponse,
)
from app.tasks.alert_tasks import scan_expiring_products
from app.config import get_settings

settings = get_settings()

router = APIRouter(prefix="/alertas", tags=["Alerts"])


@router.get(
    "/",
    response_model=AlertListResponse,
    summary="List alerts",
    description="Get a paginated list of alerts, newest first."
)
def list_alerts(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    pending: bool = Query(False, description="Only unacknowledged alerts"),
    kind: Optional[AlertKind] = Query(None, description="Filter by alert kind"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    def _list(tx):
        alerts, total, total_pages = AlertEngine(tx).list_alerts(page, page_size, pending, kind)
        return AlertListResponse(
            items=[AlertResponse.model_validate(a) for a in alerts],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    return coordinator.run(_list)


@router.get(
    "/estadisticas",
    response_model=AlertStatistics,
    summary="Alert statistics",
    description="Alert counts, per-day figures and the products with most alerts over the last days."
)
def alert_statistics(
    days: int = Query(30, ge=0, le=365, description="Window in days"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: AlertEngine(tx).statistics(days))


@router.patch(
    "/{alert_id}/atender",
    response_model=AlertResponse,
    summary="Acknowledge an alert",
    description="Mark an alert as acknowledged. Acknowledging twice returns 400."
)
def acknowledge_alert(
    alert_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: AlertResponse.model_validate(AlertEngine(tx).acknowledge(alert_id)))


@router.delete(
    "/{alert_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an alert",
    description="Delete an alert, acknowledged or not."
)
def delete_alert(
    alert_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    coordinator.run(lambda tx: AlertEngine(tx).delete_alert(alert_id))
    return None



@router.post(
    "/escanear-caducidad",
    response_model=ExpiryScanResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Scan for expiring products",
    description="Enqueue the background scan that raises expiry alerts."
)
def scan_expiry(
    days: Optional[int] = Query(None, ge=0, le=365, description="Look-ahead window in days")
):
    days = settings.EXPIRY_WINDOW_DAYS if days is None else days
    task = scan_expiring_products.delay(days)
    return ExpiryScanResponse(task_id=str(task.id), days=days)
