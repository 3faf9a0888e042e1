from fastapi import APIRouter, Depends, status

from app.database import TransactionCoordinator, get_coordinator
from app.services.offer_service import OfferService
from app.schemas.offer import ProductOfferRequest, ProductOfferResponse

router = APIRouter(prefix="/producto-oferta", tags=["Product offers"])


@router.post(
    "/assign",
    response_model=ProductOfferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a product to an offer",
    description="""
    The offer must exist and be active, and the product must not already be assigned to it.

    Errors: 404 unknown product/offer, 400 inactive offer, 409 duplicate assignment.
    """
)
def assign_offer(
    payload: ProductOfferRequest,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(
        lambda tx: ProductOfferResponse.model_validate(
            OfferService(tx).assign(payload.product_id, payload.offer_id)
        )
    )


@router.post(
    "/unassign",
    response_model=ProductOfferResponse,
    summary="Remove a product from an offer",
    description="Errors: 404 if the association doesn't exist."
)
def unassign_offer(
    payload: ProductOfferRequest,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    return coordinator.run(
        lambda tx: ProductOfferResponse.model_validate(
            OfferService(tx).unassign(payload.product_id, payload.offer_id)
        )
    )
