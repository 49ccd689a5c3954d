# backend/product_service/app/store.py

import dataclasses
import logging
import threading
import uuid
from typing import Dict, List, Optional

from .errors import ConcurrencyConflictError, DuplicateKeyError, InvalidInput
from .models import MUTABLE_FIELDS, Product

logger = logging.getLogger(__name__)


class ProductStore:
    """
    In-memory product collection with optimistic concurrency.

    Every operation runs under a single lock, so the version check and the
    commit in update/delete happen atomically with respect to each other.
    Absence is reported through the return value (None / False); only a
    version mismatch or a duplicate id raises.
    """

    def __init__(self):
        self._products: Dict[uuid.UUID, Product] = {}
        self._lock = threading.Lock()

    def get(self, product_id: uuid.UUID) -> Optional[Product]:
        with self._lock:
            return self._products.get(product_id)

    def list_all(self) -> List[Product]:
        with self._lock:
            return list(self._products.values())

    def count(self) -> int:
        with self._lock:
            return len(self._products)

    def add(self, product: Product) -> Product:
        with self._lock:
            if product.id in self._products:
                raise DuplicateKeyError(product.id)
            stored = dataclasses.replace(product, version=1)
            self._products[stored.id] = stored
            logger.debug(f"Store: added {stored!r}")
            return stored

    def update(
        self, product_id: uuid.UUID, changes: dict, expected_version: int
    ) -> Optional[Product]:
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise InvalidInput(
                ", ".join(sorted(unknown)), "Field cannot be updated."
            )

        with self._lock:
            existing = self._products.get(product_id)
            if existing is None:
                return None

            if existing.version != expected_version:
                raise ConcurrencyConflictError(
                    product_id, expected_version, existing.version
                )

            # Building the new record re-runs field validation before commit
            updated = dataclasses.replace(
                existing, version=existing.version + 1, **changes
            )
            self._products[product_id] = updated
            logger.debug(f"Store: updated {updated!r}")
            return updated

    def delete(self, product_id: uuid.UUID, expected_version: int) -> bool:
        with self._lock:
            existing = self._products.get(product_id)
            if existing is None:
                return False

            if existing.version != expected_version:
                raise ConcurrencyConflictError(
                    product_id, expected_version, existing.version
                )

            del self._products[product_id]
            logger.debug(f"Store: deleted product {product_id}")
            return True

    def clear(self) -> None:
        with self._lock:
            self._products.clear()
