# backend/product_service/app/service.py

import logging
import uuid
from typing import Callable, Dict, List, Optional

from .models import Product
from .schemas import (
    SORT_FIELDS,
    PagedResult,
    ProductCreate,
    ProductPatch,
    ProductQuery,
    ProductReplace,
    ProductResponse,
)
from .store import ProductStore

logger = logging.getLogger(__name__)

SORT_KEYS: Dict[str, Callable[[Product], object]] = {
    "name": lambda p: (p.name.casefold(), p.name),
    "price": lambda p: p.price,
    "quantity": lambda p: p.quantity,
}


def to_response(product: Product) -> ProductResponse:
    return ProductResponse.model_validate(product)


def filter_by_name(products: List[Product], search: Optional[str]) -> List[Product]:
    """Case-insensitive substring match on name; blank search keeps everything."""
    term = (search or "").strip().casefold()
    if not term:
        return products
    return [p for p in products if term in p.name.casefold()]


def sort_products(
    products: List[Product], sort_by: Optional[str], sort_direction: Optional[str]
) -> List[Product]:
    """
    Sorts by one allow-listed field.

    An unknown sort field is not an error: it falls back to name ascending,
    whatever direction was requested.
    """
    field = (sort_by or "name").strip().lower()
    descending = (sort_direction or "asc").strip().lower() == "desc"
    if field not in SORT_FIELDS:
        field, descending = "name", False
    return sorted(products, key=SORT_KEYS[field], reverse=descending)


class ProductService:
    """Query and command operations over a ProductStore."""

    def __init__(self, store: ProductStore):
        self.store = store

    def list_products(self, query: ProductQuery) -> PagedResult[ProductResponse]:
        logger.info(
            f"Product Service: Listing products with page={query.page}, page_size={query.page_size}, "
            f"search='{query.search}', sort_by={query.sort_by}, sort_direction={query.sort_direction}"
        )
        # One snapshot for the whole pipeline keeps the total and the page consistent
        products = self.store.list_all()
        products = filter_by_name(products, query.search)
        products = sort_products(products, query.sort_by, query.sort_direction)

        total = len(products)
        start = (query.page - 1) * query.page_size
        items = [to_response(p) for p in products[start : start + query.page_size]]

        logger.info(
            f"Product Service: Retrieved {len(items)} of {total} products (page={query.page})."
        )
        return PagedResult[ProductResponse](
            items=items,
            page=query.page,
            page_size=query.page_size,
            total_items=total,
        )

    def get_product(self, product_id: uuid.UUID) -> Optional[ProductResponse]:
        logger.info(f"Product Service: Fetching product with ID: {product_id}")
        product = self.store.get(product_id)
        if product is None:
            logger.warning(f"Product Service: Product with ID {product_id} not found.")
            return None
        return to_response(product)

    def create_product(self, data: ProductCreate) -> ProductResponse:
        logger.info(f"Product Service: Creating product: {data.name}")
        product = Product(
            id=uuid.uuid4(),
            name=data.name,
            price=data.price,
            quantity=data.quantity,
            version=1,
        )
        stored = self.store.add(product)
        logger.info(
            f"Product Service: Product '{stored.name}' (ID: {stored.id}) created successfully."
        )
        return to_response(stored)

    def replace_product(
        self, product_id: uuid.UUID, data: ProductReplace
    ) -> Optional[ProductResponse]:
        logger.info(
            f"Product Service: Replacing product {product_id}, expected version {data.version}"
        )
        if self.store.get(product_id) is None:
            logger.warning(
                f"Product Service: Attempted to replace non-existent product with ID {product_id}."
            )
            return None

        changes = {"name": data.name, "price": data.price, "quantity": data.quantity}
        return self._commit(product_id, changes, data.version)

    def patch_product(
        self, product_id: uuid.UUID, data: ProductPatch
    ) -> Optional[ProductResponse]:
        changes = data.changes()
        logger.info(
            f"Product Service: Patching product {product_id} with data: {changes}, "
            f"expected version {data.version}"
        )
        if self.store.get(product_id) is None:
            logger.warning(
                f"Product Service: Attempted to patch non-existent product with ID {product_id}."
            )
            return None

        return self._commit(product_id, changes, data.version)

    def delete_product(self, product_id: uuid.UUID, expected_version: int) -> bool:
        logger.info(
            f"Product Service: Attempting to delete product {product_id}, expected version {expected_version}"
        )
        if self.store.get(product_id) is None:
            logger.warning(
                f"Product Service: Attempted to delete non-existent product with ID {product_id}."
            )
            return False

        deleted = self.store.delete(product_id, expected_version)
        if deleted:
            logger.info(f"Product Service: Product {product_id} deleted successfully.")
        else:
            logger.warning(
                f"Product Service: Product {product_id} disappeared before it could be deleted."
            )
        return deleted

    def _commit(
        self, product_id: uuid.UUID, changes: dict, expected_version: int
    ) -> Optional[ProductResponse]:
        # ConcurrencyConflictError from the store is left for the caller
        updated = self.store.update(product_id, changes, expected_version)
        if updated is None:
            logger.warning(
                f"Product Service: Product {product_id} disappeared before it could be updated."
            )
            return None
        logger.info(
            f"Product Service: Product {product_id} updated successfully to version {updated.version}."
        )
        return to_response(updated)
