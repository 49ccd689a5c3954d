# backend/product_service/app/models.py

import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .config import NAME_MAX_LENGTH
from .errors import InvalidInput

MUTABLE_FIELDS = ("name", "price", "quantity")


def _to_decimal(value) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInput("price", "Price must be a number.")
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps floats like 19.99 from turning into binary noise
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInput("price", "Price must be a number.")


@dataclass(frozen=True)
class Product:
    """
    A product record as held by the store.

    Records are immutable. Every mutation produces a new instance, so a
    record handed out by the store never changes after the caller has it.
    Field constraints are checked on construction.
    """

    name: str
    price: Decimal
    quantity: int
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    version: int = 1

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidInput("name", "Name is required.")
        if len(self.name) > NAME_MAX_LENGTH:
            raise InvalidInput(
                "name", f"Name must be at most {NAME_MAX_LENGTH} characters."
            )

        price = _to_decimal(self.price)
        if not price.is_finite() or price <= 0:
            raise InvalidInput("price", "Price must be greater than zero.")
        object.__setattr__(self, "price", price)

        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidInput("quantity", "Quantity must be an integer.")
        if self.quantity < 0:
            raise InvalidInput("quantity", "Quantity cannot be negative.")

        if isinstance(self.version, bool) or not isinstance(self.version, int):
            raise InvalidInput("version", "Version must be an integer.")
        if self.version < 1:
            raise InvalidInput("version", "Version must be at least 1.")

    def __repr__(self):
        return (
            f"<Product(id={self.id}, name='{self.name}', price={self.price}, "
            f"quantity={self.quantity}, version={self.version})>"
        )
