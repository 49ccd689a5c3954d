# backend/product_service/app/main.py

import logging
import sys
import uuid
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import (
    API_PREFIX,
    CORS_ALLOW_ORIGINS,
    DEFAULT_PAGE_SIZE,
    LOG_LEVEL,
    MAX_PAGE_SIZE,
    SERVICE_NAME,
)
from .dependencies import ServiceDependency, StoreDependency
from .errors import ConcurrencyConflictError, DuplicateKeyError, InvalidInput
from .schemas import (
    ErrorResponse,
    PagedResult,
    ProductCreate,
    ProductPatch,
    ProductQuery,
    ProductReplace,
    ProductResponse,
)
from .store import ProductStore

# --- Standard Logging Configuration ---
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)

TRACE_HEADER = "X-Request-ID"

# --- FastAPI Application Setup ---
app = FastAPI(
    title="Product Service API",
    description="Manages products with optimistic concurrency on every update and delete.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[TRACE_HEADER, "Location"],
)


# --- FastAPI Event Handlers ---
@app.on_event("startup")
async def startup_event():
    # Volatile storage: the collection lives exactly as long as the process
    app.state.product_store = ProductStore()
    logger.info("Product Service: In-memory product store initialized.")


@app.middleware("http")
async def attach_trace_id(request: Request, call_next):
    trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
    request.state.trace_id = trace_id
    response = await call_next(request)
    response.headers[TRACE_HEADER] = trace_id
    return response


# --- Error Mapping ---
def error_response(
    request: Request,
    status_code: int,
    message: str,
    current_version: Optional[int] = None,
    details: Optional[list] = None,
) -> JSONResponse:
    trace_id = getattr(request.state, "trace_id", None) or uuid.uuid4().hex
    body = ErrorResponse(
        status=status_code,
        error=message,
        trace_id=trace_id,
        current_version=current_version,
        details=details,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers={TRACE_HEADER: trace_id},
    )


def validation_details(errors) -> list:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in errors
    ]


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Product Service: Invalid request to {request.url.path}: {exc.errors()}")
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Invalid request.",
        details=validation_details(exc.errors()),
    )


@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
    logger.warning(f"Product Service: Invalid input for {request.url.path}: {exc}")
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Invalid request.",
        details=validation_details(exc.errors()),
    )


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.warning(f"Product Service: Invalid input for {request.url.path}: {exc}")
    return error_response(request, status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(ConcurrencyConflictError)
async def concurrency_conflict_handler(request: Request, exc: ConcurrencyConflictError):
    logger.warning(f"Product Service: Concurrency conflict detected: {exc}")
    return error_response(
        request,
        status.HTTP_409_CONFLICT,
        str(exc),
        current_version=exc.current_version,
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.error(f"Product Service: Duplicate product id generated: {exc}", exc_info=exc)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal server error occurred.",
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Product Service: Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal server error occurred.",
    )


# --- Root Endpoint ---
@app.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
async def read_root():
    return {"message": "Welcome to the Product Service!"}


# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
def health_check(store: StoreDependency):
    return {"status": "ok", "service": SERVICE_NAME, "products": store.count()}


# --- Product Endpoints ---
router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    response_model=PagedResult[ProductResponse],
    summary="List products with paging, search and sorting",
)
def list_products(
    service: ServiceDependency,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    search: Optional[str] = Query(None, max_length=255),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_direction: Optional[str] = Query(None, alias="sortDirection"),
):
    """
    Lists products. `search` matches names case-insensitively, `sortBy` accepts
    name, price or quantity (anything else sorts by name ascending) and
    `sortDirection` accepts asc or desc.
    """
    query = ProductQuery(
        page=page,
        page_size=page_size,
        search=search,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    return service.list_products(query)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Retrieve a single product by ID",
)
def get_product(product_id: uuid.UUID, service: ServiceDependency):
    product = service.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
)
def create_product(product: ProductCreate, response: Response, service: ServiceDependency):
    created = service.create_product(product)
    response.headers["Location"] = f"{API_PREFIX}/products/{created.id}"
    return created


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Replace a product; requires the current version",
)
def replace_product(product_id: uuid.UUID, product: ProductReplace, service: ServiceDependency):
    updated = service.replace_product(product_id, product)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return updated


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Partially update a product; requires the current version",
)
def patch_product(product_id: uuid.UUID, product: ProductPatch, service: ServiceDependency):
    updated = service.patch_product(product_id, product)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return updated


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product; requires the current version",
)
def delete_product(
    product_id: uuid.UUID,
    service: ServiceDependency,
    version: int = Query(..., ge=1),
):
    if not service.delete_product(product_id, version):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.include_router(router, prefix=API_PREFIX)
