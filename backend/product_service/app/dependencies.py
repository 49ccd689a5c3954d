# backend/product_service/app/dependencies.py

from typing import Annotated

from fastapi import Depends, Request

from .service import ProductService
from .store import ProductStore


def get_product_store(request: Request) -> ProductStore:
    """The process-lifetime store created by the startup handler."""
    return request.app.state.product_store


def get_product_service(
    store: Annotated[ProductStore, Depends(get_product_store)],
) -> ProductService:
    return ProductService(store)


StoreDependency = Annotated[ProductStore, Depends(get_product_store)]
ServiceDependency = Annotated[ProductService, Depends(get_product_service)]
