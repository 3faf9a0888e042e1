from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from app.database import TransactionCoordinator, get_coordinator
from app.services.alert_service import AlertEngine
from app.services.offer_service import OfferService
from app.services.product_service import ProductService, invalidate_products
from app.schemas.offer import ActiveOffer
from app.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse
)

router = APIRouter(prefix="/productos", tags=["Products"])


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product with its catalog data and initial stock."
)
def create_product(
    product_data: ProductCreate,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """
    Create a new product.

    - **barcode**: Must be unique (409 otherwise)
    - **stock**: Initial stock; later changes go through sales and adjustments
    """
    return coordinator.run(
        lambda tx: ProductResponse.model_validate(ProductService(tx).create(product_data))
    )


@router.get(
    "/",
    response_model=ProductListResponse,
    summary="List all products",
    description="Get a paginated list of all products with optional search."
)
def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by product name"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Get paginated list of products."""
    def _list(tx):
        products, total, total_pages = ProductService(tx).get_all(page, page_size, search)
        return ProductListResponse(
            items=[ProductResponse.model_validate(p) for p in products],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    return coordinator.run(_list)


@router.get(
    "/por-caducar",
    response_model=list[ProductResponse],
    summary="Products close to expiry",
    description="Products whose expiry date falls within the next `days` days (expired ones included)."
)
def list_expiring_products(
    days: Optional[int] = Query(None, ge=0, le=365, description="Look-ahead window in days"),
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Expiry is evaluated on read, against today's date."""
    return coordinator.run(
        lambda tx: [ProductResponse.model_validate(p) for p in AlertEngine(tx).expiring_products(days)]
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
    description="Get detailed information about a specific product."
)
def get_product(
    product_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Get a product by ID."""
    return coordinator.run(
        lambda tx: ProductResponse.model_validate(ProductService(tx).get_by_id(product_id))
    )


@router.get(
    "/{product_id}/cached",
    summary="Get product from cache",
    description="Get product details from Redis cache (or database if not cached)."
)
def get_product_cached(
    product_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """
    Get product from cache.

    Returns cached data if available, otherwise fetches from database
    and caches the result.
    """
    return coordinator.run(lambda tx: ProductService(tx).get_by_id_cached(product_id))


@router.get(
    "/{product_id}/ofertas-activas",
    response_model=list[ActiveOffer],
    summary="Active offers for a product",
    description="Offers in force today for the product, highest discount first, with discounted prices."
)
def get_active_offers(
    product_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """
    Every offer in force is returned; none is applied automatically at checkout.
    """
    return coordinator.run(lambda tx: OfferService(tx).active_offers_for(product_id))


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
    description="Update catalog fields. Only provided fields will be updated; stock is not updatable here."
)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """
    Update a product.

    Partial updates are supported - only include fields you want to change.
    Cache is automatically invalidated after update.
    """
    product = coordinator.run(
        lambda tx: ProductResponse.model_validate(ProductService(tx).update(product_id, product_data))
    )
    invalidate_products([product_id])
    return product


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
    description="Delete a product by ID. Associated cache is also cleared."
)
def delete_product(
    product_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator)
):
    """Delete a product."""
    coordinator.run(lambda tx: ProductService(tx).delete(product_id))
    invalidate_products([product_id])
    return None
