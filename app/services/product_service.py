from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Iterable, Optional, List
import math

from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate
from app.services.exceptions import ConflictError, NotFoundError
from app.utils.cache import product_cache
from app.utils.updates import PartialUpdate

PRODUCT_UPDATE = PartialUpdate(
    Product,
    {
        "name",
        "barcode",
        "purchase_price",
        "sale_price",
        "unit",
        "expiry_date",
        "supplier_id",
        "category_id",
    },
)


def invalidate_products(product_ids: Iterable[int]) -> None:
    """Drop cached product details after a committed change."""
    product_cache.invalidate(*product_ids)


class ProductService:
    """
    Service class for the catalog operations the stock engine relies on.

    This service handles:
    - Creating products (with their initial stock)
    - Reading products (with caching)
    - Updating catalog fields (never stock)
    - Deleting products

    It never commits: callers run it through ``TransactionCoordinator.run``
    and invalidate the cache once the transaction has committed.
    """

    def __init__(self, db: Session):
        self.db = db

    def _ensure_barcode_free(self, barcode: str, product_id: int = None) -> None:
        query = select(Product.id).where(Product.barcode == barcode)
        if product_id is not None:
            query = query.where(Product.id != product_id)
        if self.db.scalars(query).first() is not None:
            raise ConflictError(f"A product with barcode {barcode} already exists")

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        Args:
            product_data: Product creation data

        Returns:
            Created product instance
        """
        self._ensure_barcode_free(product_data.barcode)

        product = Product(**product_data.model_dump())
        self.db.add(product)
        self.db.flush()
        return product

    def get_by_id(self, product_id: int) -> Product:
        """
        Get a product by ID.

        Raises:
            NotFoundError: If the product doesn't exist
        """
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    def get_by_id_cached(self, product_id: int) -> dict:
        """
        Get product details from cache or database.
        Returns a dictionary (suitable for API response).
        """
        cached = product_cache.get(product_id)
        if cached:
            return cached

        product = self.get_by_id(product_id)
        product_dict = {
            "id": product.id,
            "name": product.name,
            "barcode": product.barcode,
            "sale_price": str(product.sale_price),
            "stock": str(product.stock),
            "unit": product.unit.value,
            "expiry_date": str(product.expiry_date) if product.expiry_date else None,
        }
        product_cache.set(product_id, product_dict)
        return product_dict

    def get_all(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str = None
    ) -> tuple[List[Product], int, int]:
        """
        Get paginated list of products.

        Args:
            page: Page number (1-indexed)
            page_size: Number of items per page
            search: Optional search term for product name

        Returns:
            Tuple of (products list, total count, total pages)
        """
        query = self.db.query(Product)

        if search:
            query = query.filter(Product.name.ilike(f"%{search}%"))

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        products = query.order_by(Product.id.desc()).offset(offset).limit(page_size).all()

        return products, total, total_pages

    def update(self, product_id: int, product_data: ProductUpdate) -> Product:
        """
        Update an existing product.

        Only provided fields are updated, through a parameterized statement
        restricted to the catalog columns. An explicit null clears the expiry
        date, supplier or category.
        """
        product = self.get_by_id(product_id)

        changes = PRODUCT_UPDATE.changes(product_data.model_dump(exclude_unset=True))
        if "barcode" in changes:
            self._ensure_barcode_free(changes["barcode"], product_id)

        self.db.execute(PRODUCT_UPDATE.statement(product_id, changes))
        self.db.refresh(product)
        return product

    def delete(self, product_id: int) -> Optional[Product]:
        """
        Delete a product.

        History and alert rows go with it; sale lines keep their snapshot with
        a null product reference.
        """
        product = self.get_by_id(product_id)
        self.db.delete(product)
        self.db.flush()
        return product
