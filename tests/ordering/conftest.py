from datetime import UTC, datetime

import pytest
from catalogue.ledger import reset_catalogue, set_catalogue
from catalogue.ledger.memory_adapter import InMemoryCatalogue
from ordering.numbering import reset_order_numbers, set_order_numbers
from ordering.numbering.memory_adapter import InMemoryOrderSequence
from ordering.numbering.service import OrderNumberService
from protean.integrations.pytest import DomainFixture

ADDRESS = {
    "street": "123 Main St",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
}

CHECKOUT_DAY = datetime(2026, 3, 14, 10, 30, tzinfo=UTC)


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def catalogue():
    """A fresh in-memory product directory and stock ledger per test."""
    fake = InMemoryCatalogue()
    set_catalogue(fake)
    yield fake
    reset_catalogue()


@pytest.fixture(autouse=True)
def order_numbers():
    service = OrderNumberService(InMemoryOrderSequence(), prefix="EF", clock=lambda: CHECKOUT_DAY)
    set_order_numbers(service)
    yield service
    reset_order_numbers()


@pytest.fixture(autouse=True)
def _no_retry_delay(monkeypatch):
    monkeypatch.setenv("CHECKOUT_RETRY_BASE_DELAY", "0")


@pytest.fixture
def fill_cart():
    """Add ``(product_id, quantity)`` pairs to a user's cart."""
    from ordering.cart.items import AddToCart
    from protean import current_domain

    def _fill(user_id, lines):
        for product_id, quantity in lines:
            current_domain.process(
                AddToCart(user_id=user_id, product_id=product_id, quantity=quantity),
                asynchronous=False,
            )

    return _fill


@pytest.fixture
def checkout(fill_cart):
    """Fill the cart with ``lines`` (if any) and check it out through the coordinator."""
    from ordering.checkout.coordinator import create_order

    def _checkout(user_id="buyer-1", lines=(), key=None, payment_method="card", **kwargs):
        fill_cart(user_id, lines)
        return create_order(
            user_id=user_id,
            shipping_address=ADDRESS,
            billing_address=ADDRESS,
            payment_method=payment_method,
            idempotency_key=key,
            **kwargs,
        )

    return _checkout


@pytest.fixture
def address():
    return dict(ADDRESS)
