# backend/product_service/app/errors.py


class ProductServiceError(Exception):
    """Base class for errors raised by the product store and service."""


class ConcurrencyConflictError(ProductServiceError):
    """The caller's expected version does not match the stored version."""

    def __init__(self, product_id, expected_version: int, current_version: int):
        self.product_id = product_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Version mismatch for product {product_id}. "
            f"Expected {expected_version}, current version is {current_version}."
        )


class DuplicateKeyError(ProductServiceError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} already exists.")


class InvalidInput(ProductServiceError):
    """A field value violates the product constraints."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")
