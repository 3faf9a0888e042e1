from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from app.database import TransactionCoordinator, get_coordinator
from app.services.offer_service import OfferService
from app.schemas.offer import (
    OfferCreate,
    OfferListResponse,
    OfferProduct,
    OfferResponse,
    OfferUpdate,
)

router = APIRouter(prefix="/ofertas", tags=["Offers"])


@router.post(
    "/",
    response_model=OfferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an offer",
    description="Create a percentage discount offer valid between two dates."
)
def create_offer(
    offer_data: OfferCreate,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: OfferResponse.model_validate(OfferService(tx).create(offer_data)))


@router.get(
    "/",
    response_model=OfferListResponse,
    summary="List offers",
    description="Get a paginated list of offers, optionally filtered by the active flag."
)
def list_offers(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    def _list(tx):
        offers, total, total_pages = OfferService(tx).get_all(page, page_size, active)
        return OfferListResponse(
            items=[OfferResponse.model_validate(o) for o in offers],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    return coordinator.run(_list)


@router.get(
    "/{offer_id}",
    response_model=OfferResponse,
    summary="Get offer by ID"
)
def get_offer(
    offer_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: OfferResponse.model_validate(OfferService(tx).get_by_id(offer_id)))


@router.get(
    "/{offer_id}/productos",
    response_model=list[OfferProduct],
    summary="Products of an offer",
    description="Products assigned to the offer with their discounted price."
)
def get_offer_products(
    offer_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(lambda tx: OfferService(tx).products_for(offer_id))


@router.put(
    "/{offer_id}",
    response_model=OfferResponse,
    summary="Update an offer",
    description="Partial update. Deactivating an offer keeps its existing product assignments."
)
def update_offer(
    offer_id: int,
    offer_data: OfferUpdate,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(
        lambda tx: OfferResponse.model_validate(OfferService(tx).update(offer_id, offer_data))
    )


@router.delete(
    "/{offer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an offer",
    description="Rejected with 409 while any product is assigned to the offer."
)
def delete_offer(
    offer_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    coordinator.run(lambda tx: OfferService(tx).delete(offer_id))
    return None
