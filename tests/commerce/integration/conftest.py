import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from commerce.api import inventory_router, order_router, payment_router, tracking_router
from commerce.api.errors import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(inventory_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(tracking_router)
    register_exception_handlers(app)
    return TestClient(app, raise_server_exceptions=False)
