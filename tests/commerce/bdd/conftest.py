"""Shared BDD fixtures and step definitions for stock and payments."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from commerce.stock.product import Product


@pytest.fixture()
def outcome():
    """Container for results and captured errors of When steps."""
    return {"exc": None, "result": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a product "{title}" with {stock:d} units of size "{size}" color "{color}"'),
    target_fixture="variant",
)
def _(register_product, title, stock, size, color):
    product_id = register_product(
        title=title,
        variants=[{"size": size, "color": color, "price": 100.0, "stock": stock}],
    )
    return {"product_id": product_id, "size": size, "color": color}


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the variant has {stock:d} units"))
def _(variant, stock):
    product = current_domain.repository_for(Product).get(variant["product_id"])
    assert product.available(variant["size"], variant["color"]) == stock
