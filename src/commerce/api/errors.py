"""HTTP mapping for commerce errors.

protean's handlers cover ``ValidationError`` (400) and ``ObjectNotFoundError``
(404). The handlers added here are looked up by the exception's class first,
so ``InsufficientStock`` gets its itemised body even though it is also a
``ValidationError``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from commerce.errors import (
    Forbidden,
    GatewayUnavailable,
    InsufficientStock,
    InvalidSignature,
    InvalidWebhookPayload,
    OrderNotFound,
    PaymentGatewayNotConfigured,
    RefundNotFound,
    Unauthorized,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    InvalidSignature: 400,
    InvalidWebhookPayload: 400,
    Unauthorized: 401,
    Forbidden: 403,
    OrderNotFound: 404,
    RefundNotFound: 404,
    GatewayUnavailable: 502,
    PaymentGatewayNotConfigured: 503,
}

# Signature failures never say which part did not match
_GENERIC_MESSAGES = {
    InvalidSignature: "Invalid signature",
}


async def insufficient_stock_handler(request: Request, exc: InsufficientStock) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Insufficient stock",
            "shortfalls": [shortfall.to_dict() for shortfall in exc.shortfalls],
        },
    )


async def commerce_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    message = _GENERIC_MESSAGES.get(type(exc), str(exc))
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Install protean's handlers and the commerce-specific ones."""
    register_protean_handlers(app)
    app.add_exception_handler(InsufficientStock, insufficient_stock_handler)
    for exc_class in ERROR_STATUS_CODES:
        app.add_exception_handler(exc_class, commerce_error_handler)
