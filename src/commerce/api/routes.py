"""FastAPI routes for the commerce context — inventory, orders, payments and tracking.

Handlers that take aggregate locks or call the payment gateway are plain
``def`` functions, so FastAPI runs them in its threadpool and the event loop
keeps serving other requests while they wait.
"""

import json

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.api.auth import Principal, get_principal, require_admin
from commerce.api.schemas import (
    AdjustStockRequest,
    AdjustStockResponse,
    AppendTrackingRequest,
    CreateIntentRequest,
    DeliverRequest,
    IntentResponse,
    LedgerEntryResponse,
    LedgerPageResponse,
    OrderItemSchema,
    OrderResponse,
    OrderStatusResponse,
    OrderTrackingResponse,
    PaymentConfigResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    ProductIdResponse,
    PublicTrackingResponse,
    RefundRequest,
    RefundResponse,
    RefundStatusResponse,
    RegisterProductRequest,
    ShippingAddressSchema,
    StockAlertsResponse,
    TrackingEventResponse,
    UpdateStatusRequest,
    VariantStockResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAckResponse,
)
from commerce.errors import Forbidden, OrderNotFound, RefundNotFound
from commerce.gateway import get_gateway
from commerce.order.checkout import CheckoutService
from commerce.order.confirmation import load_order, order_locks
from commerce.order.fulfillment import AppendTracking, MarkOrderDelivered, UpdateOrderStatus
from commerce.order.order import Order
from commerce.order.settlement import open_intent, request_refund, verify_client_payment
from commerce.order.tracking import is_valid_tracking_number
from commerce.projections.order_lookup import find_order_id
from commerce.stock.ledger import StockLedger
from commerce.stock.registration import RegisterProduct
from commerce.utils.commands import process_serialized
from commerce.webhook.processor import WebhookProcessor


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _tracking_history(order: Order) -> list[TrackingEventResponse]:
    return [
        TrackingEventResponse(
            status=event.status,
            location=event.location,
            description=event.description,
            timestamp=event.timestamp,
        )
        for event in order.tracking_history
    ]


def _refund_response(refund) -> RefundResponse:
    return RefundResponse(
        refund_id=refund.refund_id,
        amount=refund.amount,
        status=refund.status,
        created_at=refund.created_at,
        processed_at=refund.processed_at,
        notes=json.loads(refund.notes) if refund.notes else None,
    )


def _order_response(order: Order) -> OrderResponse:
    address = order.shipping_address
    refund = order.refund
    return OrderResponse(
        order_id=str(order.id),
        user_id=str(order.user_id),
        status=order.status,
        items=[
            OrderItemSchema(
                product_id=str(item.product_id),
                title=item.title,
                size=item.size,
                color=item.color,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in order.items
        ],
        shipping_address=(
            ShippingAddressSchema(
                full_name=address.full_name,
                address=address.address,
                city=address.city,
                postal_code=address.postal_code,
                country=address.country,
                phone=address.phone,
            )
            if address
            else None
        ),
        payment_method=order.payment_method,
        items_price=order.items_price,
        tax_price=order.tax_price,
        shipping_price=order.shipping_price,
        total_price=order.total_price,
        is_paid=order.is_paid,
        paid_at=order.paid_at,
        is_delivered=order.is_delivered,
        delivered_at=order.delivered_at,
        tracking_number=order.tracking_number,
        carrier=order.carrier,
        estimated_delivery=order.estimated_delivery,
        refund=_refund_response(refund) if refund else None,
        tracking_history=_tracking_history(order),
        created_at=order.created_at,
    )


def _variant_response(level) -> VariantStockResponse:
    return VariantStockResponse(
        product_id=str(level.product_id),
        title=level.title,
        category=level.category,
        size=level.size,
        color=level.color,
        stock=level.stock,
    )


def _owned_order(order_id: str, principal: Principal) -> Order:
    order = load_order(order_id)
    if not principal.can_access(order.user_id):
        raise Forbidden("Not allowed to access this order")
    return order


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"], dependencies=[Depends(require_admin)])


@inventory_router.post("/products", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    """Register a product with its variants and opening stock."""
    command = RegisterProduct(
        title=body.title,
        category=body.category,
        variants=json.dumps([variant.model_dump() for variant in body.variants]),
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@inventory_router.post("/products/{product_id}/adjust", response_model=AdjustStockResponse)
def adjust_stock(product_id: str, body: AdjustStockRequest) -> AdjustStockResponse:
    """Set a variant's stock to a counted value."""
    new_stock = StockLedger().adjust(
        product_id,
        size=body.size,
        color=body.color,
        new_stock=body.new_stock,
        reason=body.reason,
        notes=body.notes,
    )
    return AdjustStockResponse(product_id=product_id, size=body.size, color=body.color, stock=new_stock)


@inventory_router.get("/low-stock", response_model=list[VariantStockResponse])
async def low_stock(threshold: int | None = Query(default=None, ge=0)) -> list[VariantStockResponse]:
    return [_variant_response(level) for level in StockLedger().low_stock(threshold)]


@inventory_router.get("/out-of-stock", response_model=list[VariantStockResponse])
async def out_of_stock() -> list[VariantStockResponse]:
    return [_variant_response(level) for level in StockLedger().out_of_stock()]


@inventory_router.get("/history/{product_id}", response_model=LedgerPageResponse)
async def stock_history(
    product_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> LedgerPageResponse:
    """Ledger entries for a product, newest first."""
    page = StockLedger().history(product_id, limit=limit, offset=offset)
    return LedgerPageResponse(
        product_id=product_id,
        entries=[
            LedgerEntryResponse(
                sequence=entry.sequence,
                size=entry.size,
                color=entry.color,
                change_type=entry.change_type,
                quantity=entry.quantity,
                previous_stock=entry.previous_stock,
                new_stock=entry.new_stock,
                order_id=str(entry.order_id) if entry.order_id else None,
                reason=entry.reason,
                notes=entry.notes,
                recorded_at=entry.recorded_at,
            )
            for entry in page.entries
        ],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@inventory_router.get("/alerts", response_model=StockAlertsResponse)
async def stock_alerts(threshold: int | None = Query(default=None, ge=0)) -> StockAlertsResponse:
    ledger = StockLedger()
    alerts = ledger.alerts(threshold)
    return StockAlertsResponse(
        threshold=ledger.threshold if threshold is None else threshold,
        low_stock_count=alerts["low_stock_count"],
        out_of_stock_count=alerts["out_of_stock_count"],
        low_stock=[_variant_response(level) for level in alerts["low_stock"]],
        out_of_stock=[_variant_response(level) for level in alerts["out_of_stock"]],
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlaceOrderResponse)
def place_order(body: PlaceOrderRequest, principal: Principal = Depends(get_principal)) -> PlaceOrderResponse:
    """Check out: validate stock, create the order, deduct stock, open an intent."""
    result = CheckoutService().place_order(
        user_id=principal.user_id,
        items=[item.model_dump() for item in body.items],
        shipping_address=body.shipping_address.model_dump(),
        payment_method=body.payment_method,
        prices={
            "items_price": body.items_price,
            "tax_price": body.tax_price,
            "shipping_price": body.shipping_price,
            "total_price": body.total_price,
        },
    )
    intent = None
    if result.intent is not None:
        intent = IntentResponse(
            intent_id=result.intent.intent_id,
            amount=result.intent.amount,
            currency=result.intent.currency,
            public_key=get_gateway().public_key,
            order_id=str(result.order.id),
        )
    return PlaceOrderResponse(order=_order_response(result.order), intent=intent)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, principal: Principal = Depends(get_principal)) -> OrderResponse:
    return _order_response(_owned_order(order_id, principal))


@order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    principal: Principal = Depends(require_admin),
) -> OrderStatusResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        location=body.location,
        description=body.description,
        carrier=body.carrier,
        estimated_delivery=body.estimated_delivery,
    )
    status = process_serialized(command, order_locks, order_id)
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.put("/{order_id}/deliver", response_model=OrderStatusResponse)
def deliver_order(
    order_id: str,
    body: DeliverRequest | None = None,
    principal: Principal = Depends(require_admin),
) -> OrderStatusResponse:
    command = MarkOrderDelivered(order_id=order_id, location=body.location if body else None)
    status = process_serialized(command, order_locks, order_id)
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.post("/{order_id}/tracking", response_model=OrderStatusResponse)
def append_tracking(
    order_id: str,
    body: AppendTrackingRequest,
    principal: Principal = Depends(require_admin),
) -> OrderStatusResponse:
    command = AppendTracking(
        order_id=order_id,
        status=body.status,
        location=body.location,
        description=body.description,
    )
    status = process_serialized(command, order_locks, order_id)
    return OrderStatusResponse(order_id=order_id, status=status)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/intent", status_code=201, response_model=IntentResponse)
def create_intent(body: CreateIntentRequest, principal: Principal = Depends(get_principal)) -> IntentResponse:
    """Open a gateway payment intent for one of the caller's orders."""
    _owned_order(body.order_id, principal)
    intent = open_intent(body.order_id, body.amount, body.currency, payment_method=body.payment_method)
    return IntentResponse(
        intent_id=intent.intent_id,
        amount=intent.amount,
        currency=intent.currency,
        public_key=get_gateway().public_key,
        order_id=body.order_id,
    )


@payment_router.post("/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    body: VerifyPaymentRequest,
    principal: Principal = Depends(get_principal),
) -> VerifyPaymentResponse:
    """Confirm a payment the client completed, by its gateway signature."""
    _owned_order(body.order_id, principal)
    newly_paid = verify_client_payment(
        body.order_id,
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
        payer_email=principal.email,
    )
    return VerifyPaymentResponse(order_id=body.order_id, is_paid=True, newly_paid=newly_paid)


@payment_router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
    x_razorpay_signature: str = Header(default=""),
) -> WebhookAckResponse:
    """Receive a gateway webhook. The signature covers the raw body."""
    raw_body = await request.body()
    await run_in_threadpool(WebhookProcessor().process, raw_body, x_gateway_signature or x_razorpay_signature)
    return WebhookAckResponse()


@payment_router.post("/refund", response_model=OrderResponse)
def refund_order(body: RefundRequest, principal: Principal = Depends(require_admin)) -> OrderResponse:
    order = request_refund(body.order_id, amount=body.amount, reason=body.reason, notes=body.notes)
    return _order_response(order)


@payment_router.get("/refund/{order_id}", response_model=RefundStatusResponse)
async def refund_status(order_id: str, principal: Principal = Depends(get_principal)) -> RefundStatusResponse:
    """The order's refund, for its owner or an admin."""
    order = _owned_order(order_id, principal)
    if order.refund is None:
        raise RefundNotFound(order_id)
    return RefundStatusResponse(order_id=str(order.id), refund=_refund_response(order.refund))


@payment_router.get("/config", response_model=PaymentConfigResponse)
async def payment_config() -> PaymentConfigResponse:
    gateway = get_gateway()
    return PaymentConfigResponse(
        configured=gateway.is_configured,
        public_key=gateway.public_key if gateway.is_configured else None,
    )


# ---------------------------------------------------------------------------
# Tracking Router
# ---------------------------------------------------------------------------
tracking_router = APIRouter(prefix="/tracking", tags=["tracking"])


@tracking_router.get("/order/{order_id}", response_model=OrderTrackingResponse)
async def track_own_order(order_id: str, principal: Principal = Depends(get_principal)) -> OrderTrackingResponse:
    """Full tracking for the caller's own order. Other callers get 404."""
    order = load_order(order_id)
    if str(order.user_id) != principal.user_id:
        raise OrderNotFound(order_id)
    return OrderTrackingResponse(
        order_id=str(order.id),
        tracking_number=order.tracking_number,
        status=order.status,
        carrier=order.carrier,
        estimated_delivery=order.estimated_delivery,
        is_delivered=order.is_delivered,
        delivered_at=order.delivered_at,
        tracking_history=_tracking_history(order),
    )


@tracking_router.get("/{tracking_number}", response_model=PublicTrackingResponse)
async def track_by_number(tracking_number: str) -> PublicTrackingResponse:
    """Public tracking lookup. Shows shipping progress only."""
    tracking_number = tracking_number.strip().upper()
    if not is_valid_tracking_number(tracking_number):
        raise ValidationError({"tracking_number": ["Invalid tracking number format"]})

    order_id = find_order_id(tracking_number=tracking_number)
    if order_id is None:
        raise OrderNotFound(tracking_number)

    order = load_order(order_id)
    return PublicTrackingResponse(
        tracking_number=order.tracking_number,
        status=order.status,
        carrier=order.carrier,
        estimated_delivery=order.estimated_delivery,
        is_delivered=order.is_delivered,
        tracking_history=_tracking_history(order),
    )
