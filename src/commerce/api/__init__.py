from commerce.api.routes import inventory_router, order_router, payment_router, tracking_router

__all__ = ["inventory_router", "order_router", "payment_router", "tracking_router"]
