import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from ordering.api.handlers import register_error_handlers
from ordering.api.routes import cart_router, order_router
from ordering.domain import ordering


@pytest.fixture()
def client():
    app = FastAPI()

    @app.middleware("http")
    async def domain_context(request: Request, call_next):
        with ordering.domain_context():
            return await call_next(request)

    register_error_handlers(app)
    app.include_router(cart_router)
    app.include_router(order_router)
    return TestClient(app)


@pytest.fixture(autouse=True)
def products(catalogue):
    catalogue.add_product("P1", price=10.0, stock=5, seller_id="seller-a", shipping_cost=3.0)
    catalogue.add_product("P2", price=20.0, stock=5, seller_id="seller-b")
    return catalogue


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setenv("PAYMENT_WEBHOOK_SECRET", "test-signature")
    return "test-signature"
