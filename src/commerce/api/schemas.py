"""Pydantic request/response schemas for the commerce API.

These are external contracts, kept apart from the internal protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ShippingAddressSchema(BaseModel):
    full_name: str
    address: str
    city: str
    postal_code: str
    country: str
    phone: str | None = None


class OrderItemSchema(BaseModel):
    product_id: str
    size: str
    color: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    title: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class VariantSchema(BaseModel):
    size: str
    color: str
    price: float = Field(ge=0)
    stock: int = Field(ge=0, default=0)


class RegisterProductRequest(BaseModel):
    title: str
    category: str | None = None
    variants: list[VariantSchema] = Field(min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Linen Shirt",
                    "category": "Shirts",
                    "variants": [{"size": "M", "color": "White", "price": 1499.0, "stock": 25}],
                }
            ]
        }
    }


class ProductIdResponse(BaseModel):
    product_id: str


class AdjustStockRequest(BaseModel):
    size: str
    color: str
    new_stock: int = Field(ge=0)
    reason: str
    notes: str | None = None


class AdjustStockResponse(BaseModel):
    product_id: str
    size: str
    color: str
    stock: int


class VariantStockResponse(BaseModel):
    product_id: str
    title: str
    category: str | None = None
    size: str
    color: str
    stock: int


class StockAlertsResponse(BaseModel):
    threshold: int
    low_stock_count: int
    out_of_stock_count: int
    low_stock: list[VariantStockResponse]
    out_of_stock: list[VariantStockResponse]


class LedgerEntryResponse(BaseModel):
    sequence: int
    size: str
    color: str
    change_type: str
    quantity: int
    previous_stock: int
    new_stock: int
    order_id: str | None = None
    reason: str
    notes: str | None = None
    recorded_at: datetime | None = None


class LedgerPageResponse(BaseModel):
    product_id: str
    entries: list[LedgerEntryResponse]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderItemSchema] = Field(min_length=1)
    shipping_address: ShippingAddressSchema
    payment_method: str
    items_price: float = Field(ge=0)
    tax_price: float = Field(ge=0, default=0.0)
    shipping_price: float = Field(ge=0, default=0.0)
    total_price: float | None = None


class IntentResponse(BaseModel):
    intent_id: str
    amount: int
    currency: str
    public_key: str | None = None
    order_id: str


class TrackingEventResponse(BaseModel):
    status: str
    location: str | None = None
    description: str | None = None
    timestamp: datetime | None = None


class RefundResponse(BaseModel):
    refund_id: str
    amount: float
    status: str
    created_at: datetime | None = None
    processed_at: datetime | None = None
    notes: dict | None = None


class RefundStatusResponse(BaseModel):
    order_id: str
    refund: RefundResponse


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    items: list[OrderItemSchema]
    shipping_address: ShippingAddressSchema | None = None
    payment_method: str
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_paid: bool
    paid_at: datetime | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    estimated_delivery: str | None = None
    refund: RefundResponse | None = None
    tracking_history: list[TrackingEventResponse] = []
    created_at: datetime | None = None


class PlaceOrderResponse(BaseModel):
    order: OrderResponse
    intent: IntentResponse | None = None


class UpdateStatusRequest(BaseModel):
    status: str
    location: str | None = None
    description: str | None = None
    carrier: str | None = None
    estimated_delivery: str | None = None


class DeliverRequest(BaseModel):
    location: str | None = None


class AppendTrackingRequest(BaseModel):
    status: str
    location: str | None = None
    description: str | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class CreateIntentRequest(BaseModel):
    order_id: str
    amount: float
    currency: str = "INR"
    payment_method: str | None = None


class VerifyPaymentRequest(BaseModel):
    order_id: str
    gateway_order_id: str
    gateway_payment_id: str
    signature: str


class VerifyPaymentResponse(BaseModel):
    order_id: str
    is_paid: bool
    newly_paid: bool


class RefundRequest(BaseModel):
    order_id: str
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = None
    notes: dict[str, str] | None = None


class WebhookAckResponse(BaseModel):
    received: bool = True


class PaymentConfigResponse(BaseModel):
    configured: bool
    public_key: str | None = None


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------
class PublicTrackingResponse(BaseModel):
    tracking_number: str
    status: str
    carrier: str | None = None
    estimated_delivery: str | None = None
    is_delivered: bool
    tracking_history: list[TrackingEventResponse]


class OrderTrackingResponse(PublicTrackingResponse):
    order_id: str
    delivered_at: datetime | None = None
