"""ShopLedger FastAPI application.

Serves the commerce context (inventory, orders, payments, tracking) and
processes commands synchronously per request. Every request runs inside the
commerce domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - default      → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commerce.config import GatewaySettings
from commerce.domain import commerce
from commerce.gateway import build_gateway, configure_gateway
from commerce.utils.logging import bind_request_context, clear_request_context, configure_logging

configure_logging()
commerce.init()

logger = structlog.get_logger(__name__)

gateway_settings = GatewaySettings.from_env()
configure_gateway(build_gateway(gateway_settings))
logger.info(
    "Payment gateway ready",
    configured=gateway_settings.is_configured,
    webhook_secret_source=gateway_settings.webhook_secret_source,
)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="ShopLedger API",
    description="Stock ledger and order fulfillment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the commerce domain context and tag the request's log lines."""
    request_id = request.headers.get("x-request-id") or uuid4().hex
    bind_request_context(request_id=request_id, path=request.url.path)
    try:
        with commerce.domain_context():
            response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-Id"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers and error mapping
# ---------------------------------------------------------------------------
from commerce.api import inventory_router, order_router, payment_router, tracking_router  # noqa: E402
from commerce.api.errors import register_exception_handlers  # noqa: E402

app.include_router(inventory_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(tracking_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": commerce.name,
            "payment_gateway": {"configured": gateway_settings.is_configured},
        }
    )
