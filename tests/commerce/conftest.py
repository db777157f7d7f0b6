import json

import pytest
from protean.integrations.pytest import DomainFixture

SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "postal_code": "560001",
    "country": "India",
    "phone": "9800000000",
}


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        for _, broker in current_domain.brokers.items():
            broker._data_reset()

        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def gateway():
    """Every test talks to a FakeGateway unless it installs another one."""
    from commerce.gateway import configure_gateway, reset_gateway
    from commerce.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    configure_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture(autouse=True)
def notifier():
    from commerce.notifier import configure_notifier, reset_notifier
    from commerce.notifier.fake_adapter import FakeNotifier

    fake = FakeNotifier()
    configure_notifier(fake)
    yield fake
    reset_notifier()


@pytest.fixture()
def register_product():
    """Register a product through its command and return the product id."""
    from protean import current_domain

    from commerce.stock.registration import RegisterProduct

    def _register(title="Linen Shirt", variants=None, category="Shirts"):
        variants = variants or [{"size": "M", "color": "White", "price": 100.0, "stock": 5}]
        return current_domain.process(
            RegisterProduct(title=title, category=category, variants=json.dumps(variants)),
            asynchronous=False,
        )

    return _register


@pytest.fixture()
def place_order():
    """Check out through CheckoutService and return its CheckoutResult."""
    from commerce.order.checkout import CheckoutService

    def _place(lines, user_id="user-001", payment_method="Cash on Delivery", unit_price=100.0, shipping_price=0.0):
        items = [
            {
                "product_id": product_id,
                "size": size,
                "color": color,
                "quantity": quantity,
                "unit_price": unit_price,
                "title": "Linen Shirt",
            }
            for product_id, size, color, quantity in lines
        ]
        items_price = sum(item["quantity"] * unit_price for item in items)
        return CheckoutService().place_order(
            user_id=user_id,
            items=items,
            shipping_address=SHIPPING_ADDRESS,
            payment_method=payment_method,
            prices={"items_price": items_price, "tax_price": 0.0, "shipping_price": shipping_price},
        )

    return _place
