"""Unit tests for products/store.py -- ProductStore CRUD, soft delete, stats."""

import pytest

from products.models import Product
from products.store import ProductStore


@pytest.fixture
def products():
    s = ProductStore("sqlite:///:memory:")
    yield s
    s.close()


def _product(name: str = "Widget", price: float = 2.5, stock: int = 20, category: str = "tools") -> Product:
    return Product(name=name, description=f"{name} description", price=price, category=category, stock=stock)


def test_create_and_get(products) -> None:
    pid = products.create_product(_product())
    product = products.get_product(pid)
    assert product.name == "Widget"
    assert product.is_active is True
    assert product.created_at


def test_list_newest_first(products) -> None:
    first = products.create_product(_product("First"))
    second = products.create_product(_product("Second"))
    assert [p.id for p in products.list_products()] == [second, first]


def test_update_changes_only_given_fields(products) -> None:
    pid = products.create_product(_product())
    assert products.update_product(pid, price=3.75) is True
    product = products.get_product(pid)
    assert product.price == 3.75
    assert product.name == "Widget"


def test_update_rejects_unknown_field(products) -> None:
    pid = products.create_product(_product())
    with pytest.raises(ValueError):
        products.update_product(pid, is_active=0)


def test_soft_delete_keeps_row(products) -> None:
    pid = products.create_product(_product())
    assert products.delete_product(pid) is True

    assert products.get_product(pid) is None
    assert products.list_products() == []
    assert products.update_product(pid, price=1.0) is False
    assert products.delete_product(pid) is False

    row = products.get_row_any_state(pid)
    assert row is not None
    assert row.is_active is False


def test_stats_over_active_products(products) -> None:
    products.create_product(_product("A", price=2.0, stock=5, category="tools"))
    products.create_product(_product("B", price=10.0, stock=30, category="toys"))
    gone = products.create_product(_product("C", price=100.0, stock=1, category="misc"))
    products.delete_product(gone)

    stats = products.get_stats()
    assert stats == {
        "total_products": 2,
        "total_stock": 35,
        "inventory_value": 310.0,
        "categories": 2,
        "low_stock": 1,
    }


def test_stats_on_empty_store(products) -> None:
    assert products.get_stats() == {
        "total_products": 0,
        "total_stock": 0,
        "inventory_value": 0.0,
        "categories": 0,
        "low_stock": 0,
    }
