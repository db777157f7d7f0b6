"""Error taxonomy for the commerce context.

Caller-facing validation failures extend protean's ``ValidationError`` so the
standard FastAPI handlers map them to 400. Gateway and signature failures are
plain exceptions with their own handlers in ``commerce.api.errors``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class InsufficientStock(ValidationError):
    """One or more variants cannot cover the requested quantity."""

    def __init__(self, shortfalls):
        self.shortfalls = list(shortfalls)
        messages = [
            f"{s.product_title or s.product_id} ({s.size}/{s.color}): "
            f"requested {s.requested}, available {s.available}"
            for s in self.shortfalls
        ]
        super().__init__({"stock": messages})


class RefundExceedsTotal(ValidationError):
    def __init__(self, amount, total_price):
        self.amount = amount
        self.total_price = total_price
        super().__init__({"amount": [f"Refund amount {amount} exceeds order total {total_price}"]})


class OrderNotFound(ObjectNotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class RefundNotFound(ObjectNotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"No refund found for order {order_id}")


class InvalidSignature(Exception):
    """Signature missing or not matching. Never carries the signature itself."""


class InvalidWebhookPayload(Exception):
    pass


class GatewayUnavailable(Exception):
    """The payment gateway could not be reached or rejected the call."""

    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class PaymentGatewayNotConfigured(Exception):
    """No credentials were provided for the payment gateway."""


class Unauthorized(Exception):
    pass


class Forbidden(Exception):
    pass
