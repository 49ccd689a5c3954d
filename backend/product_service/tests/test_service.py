# backend/product_service/tests/test_service.py

import math
import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from app.errors import ConcurrencyConflictError, DuplicateKeyError
from app.models import Product
from app.schemas import ProductCreate, ProductPatch, ProductQuery, ProductReplace
from app.service import ProductService
from app.store import ProductStore
from pydantic import ValidationError


# --- Pytest Fixtures ---
@pytest.fixture(scope="function")
def store():
    return ProductStore()


@pytest.fixture(scope="function")
def service(store: ProductStore):
    return ProductService(store)


@pytest.fixture(scope="function")
def thirty_products(service: ProductService):
    return [
        service.create_product(
            ProductCreate(name=f"Product {i}", price=Decimal(i), quantity=i)
        )
        for i in range(1, 31)
    ]


def create(service, name, price="1", quantity=0):
    return service.create_product(
        ProductCreate(name=name, price=Decimal(price), quantity=quantity)
    )


# --- Create / Get ---


def test_create_product_has_version_one(service: ProductService):
    result = service.create_product(
        ProductCreate(name="Keyboard", price=Decimal("100"), quantity=10)
    )

    assert result.version == 1
    assert result.name == "Keyboard"
    assert result.price == Decimal("100")
    assert result.quantity == 10
    assert isinstance(result.id, uuid.UUID)


def test_create_product_generates_unique_ids(service: ProductService):
    ids = {create(service, f"P{i}").id for i in range(20)}
    assert len(ids) == 20


def test_create_product_propagates_duplicate_key():
    store = MagicMock(spec=ProductStore)
    store.add.side_effect = DuplicateKeyError(uuid.uuid4())

    with pytest.raises(DuplicateKeyError):
        ProductService(store).create_product(
            ProductCreate(name="Keyboard", price=Decimal("100"), quantity=10)
        )


def test_create_product_input_validation():
    with pytest.raises(ValidationError):
        ProductCreate(name="", price=Decimal("1"), quantity=0)
    with pytest.raises(ValidationError):
        ProductCreate(name="x" * 101, price=Decimal("1"), quantity=0)
    with pytest.raises(ValidationError):
        ProductCreate(name="Mouse", price=Decimal("0"), quantity=0)
    with pytest.raises(ValidationError):
        ProductCreate(name="Mouse", price=Decimal("1"), quantity=-1)


def test_get_product_returns_none_when_not_found(service: ProductService):
    assert service.get_product(uuid.uuid4()) is None


def test_get_product_returns_external_shape(service: ProductService):
    created = create(service, "Monitor", "250.50", 3)

    result = service.get_product(created.id)

    assert result == created
    assert result.model_dump(by_alias=True) == {
        "id": created.id,
        "name": "Monitor",
        "price": 250.5,
        "quantity": 3,
        "version": 1,
    }


# --- List pipeline ---


def test_list_applies_pagination(service: ProductService, thirty_products):
    result = service.list_products(ProductQuery(page=2, page_size=10))

    assert len(result.items) == 10
    assert result.total_items == 30
    assert result.page == 2
    assert result.page_size == 10
    assert result.total_pages == 3


@pytest.mark.parametrize("page_size", [1, 7, 10, 30, 100])
def test_list_page_arithmetic(service: ProductService, thirty_products, page_size):
    total = len(thirty_products)
    expected_pages = math.ceil(total / page_size)

    first = service.list_products(ProductQuery(page=1, page_size=page_size))
    last = service.list_products(ProductQuery(page=expected_pages, page_size=page_size))

    assert first.total_pages == expected_pages
    assert len(first.items) == min(page_size, total)
    assert len(last.items) == (total % page_size or page_size)


def test_list_pages_cover_every_item_once(service: ProductService, thirty_products):
    seen = []
    for page in range(1, 6):
        seen.extend(
            p.id
            for p in service.list_products(
                ProductQuery(page=page, page_size=7, sort_by="price")
            ).items
        )

    assert seen == [p.id for p in thirty_products]


def test_list_page_past_end_is_empty(service: ProductService, thirty_products):
    result = service.list_products(ProductQuery(page=5, page_size=10))

    assert result.items == []
    assert result.total_items == 30
    assert result.total_pages == 3


def test_list_empty_store(service: ProductService):
    result = service.list_products(ProductQuery())

    assert result.items == []
    assert result.total_items == 0
    assert result.total_pages == 0
    assert result.page == 1
    assert result.page_size == 20


@pytest.mark.parametrize("sort_by", ["price", "quantity"])
def test_list_sorts_numeric_fields(service: ProductService, sort_by):
    for name, price, qty in [("A", "30", 2), ("B", "10", 3), ("C", "20", 1)]:
        create(service, name, price, qty)

    asc = service.list_products(ProductQuery(sort_by=sort_by, sort_direction="asc"))
    desc = service.list_products(ProductQuery(sort_by=sort_by, sort_direction="desc"))

    asc_values = [getattr(p, sort_by) for p in asc.items]
    desc_values = [getattr(p, sort_by) for p in desc.items]
    assert asc_values == sorted(asc_values)
    assert desc_values == sorted(desc_values, reverse=True)


def test_list_sorts_by_name_case_insensitively(service: ProductService):
    for name in ["banana", "Apple", "cherry"]:
        create(service, name)

    asc = service.list_products(ProductQuery(sort_by="NAME"))
    desc = service.list_products(ProductQuery(sort_by="name", sort_direction="DESC"))

    assert [p.name for p in asc.items] == ["Apple", "banana", "cherry"]
    assert [p.name for p in desc.items] == ["cherry", "banana", "Apple"]


def test_list_unknown_sort_field_falls_back_to_name_ascending(service: ProductService):
    for name, price in [("Zeta", "1"), ("Alpha", "3"), ("Mid", "2")]:
        create(service, name, price)

    by_name = service.list_products(ProductQuery(sort_by="name"))
    unknown = service.list_products(ProductQuery(sort_by="id; drop", sort_direction="desc"))

    assert [p.name for p in unknown.items] == [p.name for p in by_name.items]
    assert [p.name for p in unknown.items] == ["Alpha", "Mid", "Zeta"]


def test_list_search_is_case_insensitive_substring(service: ProductService):
    for name in ["Wireless Mouse", "Gaming MOUSE pad", "Keyboard", "Mousetrap"]:
        create(service, name)

    result = service.list_products(ProductQuery(search="mouse"))

    assert {p.name for p in result.items} == {
        "Wireless Mouse",
        "Gaming MOUSE pad",
        "Mousetrap",
    }
    assert result.total_items == 3


def test_list_search_is_trimmed(service: ProductService):
    create(service, "Keyboard")
    create(service, "Mouse")

    result = service.list_products(ProductQuery(search="  key  "))

    assert [p.name for p in result.items] == ["Keyboard"]


@pytest.mark.parametrize("search", [None, "", "   "])
def test_list_blank_search_keeps_everything(service: ProductService, thirty_products, search):
    result = service.list_products(ProductQuery(search=search, page_size=100))
    assert result.total_items == 30


def test_list_total_counts_filtered_items(service: ProductService, thirty_products):
    # "Product 1", "Product 10".."Product 19"
    result = service.list_products(ProductQuery(search="product 1", page_size=5))

    assert result.total_items == 11
    assert result.total_pages == 3
    assert len(result.items) == 5


def test_list_uses_a_single_snapshot():
    store = MagicMock(spec=ProductStore)
    store.list_all.return_value = [
        Product(name="A", price=Decimal("1"), quantity=1),
        Product(name="B", price=Decimal("2"), quantity=2),
    ]

    result = ProductService(store).list_products(ProductQuery())

    store.list_all.assert_called_once_with()
    store.get.assert_not_called()
    assert result.total_items == 2


def test_invalid_sort_direction_is_rejected():
    with pytest.raises(ValidationError):
        ProductQuery(sort_direction="sideways")


@pytest.mark.parametrize(
    "kwargs", [{"page": 0}, {"page_size": 0}, {"page_size": 101}]
)
def test_invalid_paging_is_rejected(kwargs):
    with pytest.raises(ValidationError):
        ProductQuery(**kwargs)


# --- Replace ---


def test_replace_updates_when_version_matches(service: ProductService):
    created = create(service, "Old", "10", 1)

    result = service.replace_product(
        created.id,
        ProductReplace(name="New", price=Decimal("20"), quantity=2, version=1),
    )

    assert result.name == "New"
    assert result.price == Decimal("20")
    assert result.quantity == 2
    assert result.version == 2


def test_replace_with_stale_version_raises_conflict(service: ProductService):
    created = create(service, "Old", "10", 1)
    data = ProductReplace(name="New", price=Decimal("20"), quantity=2, version=1)

    assert service.replace_product(created.id, data).version == 2
    with pytest.raises(ConcurrencyConflictError) as exc_info:
        service.replace_product(created.id, data)

    assert exc_info.value.current_version == 2
    assert service.get_product(created.id).version == 2


def test_replace_returns_none_when_not_found(service: ProductService):
    result = service.replace_product(
        uuid.uuid4(),
        ProductReplace(name="New", price=Decimal("20"), quantity=2, version=1),
    )
    assert result is None


def test_replace_returns_none_when_product_vanishes_before_update():
    existing = Product(name="Old", price=Decimal("10"), quantity=1)
    store = MagicMock(spec=ProductStore)
    store.get.return_value = existing
    store.update.return_value = None

    result = ProductService(store).replace_product(
        existing.id,
        ProductReplace(name="New", price=Decimal("20"), quantity=2, version=1),
    )

    assert result is None
    store.update.assert_called_once_with(
        existing.id, {"name": "New", "price": Decimal("20"), "quantity": 2}, 1
    )


# --- Patch ---


def test_patch_applies_only_provided_fields(service: ProductService):
    created = create(service, "Keyboard", "100", 10)

    result = service.patch_product(
        created.id, ProductPatch(price=Decimal("80"), version=1)
    )

    assert result.name == "Keyboard"
    assert result.price == Decimal("80")
    assert result.quantity == 10
    assert result.version == 2


def test_patch_ignores_explicit_nulls(service: ProductService):
    created = create(service, "Keyboard", "100", 10)

    result = service.patch_product(
        created.id, ProductPatch(name=None, quantity=3, version=1)
    )

    assert result.name == "Keyboard"
    assert result.quantity == 3


def test_patch_with_no_fields_still_bumps_version(service: ProductService):
    created = create(service, "Keyboard", "100", 10)

    result = service.patch_product(created.id, ProductPatch(version=1))

    assert result.version == 2
    assert result.name == "Keyboard"


def test_patch_with_stale_version_raises_conflict(service: ProductService):
    created = create(service, "Keyboard", "100", 10)
    service.patch_product(created.id, ProductPatch(quantity=9, version=1))

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        service.patch_product(created.id, ProductPatch(quantity=8, version=1))

    assert exc_info.value.current_version == 2
    assert service.get_product(created.id).quantity == 9


def test_patch_returns_none_when_not_found(service: ProductService):
    assert service.patch_product(uuid.uuid4(), ProductPatch(name="x", version=1)) is None


# --- Delete ---


def test_delete_returns_false_when_not_found(service: ProductService):
    assert service.delete_product(uuid.uuid4(), 1) is False


def test_delete_removes_product(service: ProductService):
    created = create(service, "Keyboard")

    assert service.delete_product(created.id, 1) is True
    assert service.get_product(created.id) is None


def test_delete_with_stale_version_raises_conflict(service: ProductService):
    created = create(service, "Keyboard")
    service.patch_product(created.id, ProductPatch(quantity=1, version=1))

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        service.delete_product(created.id, 1)

    assert exc_info.value.current_version == 2
    assert service.get_product(created.id) is not None
