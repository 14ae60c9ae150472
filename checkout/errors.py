# checkout/errors.py
"""Application errors.

Coupon validation failures are never raised: they travel as a
``CouponEvaluation`` with a reason code. Everything here is an outcome the
caller has to react to (retry, fix the request, or reconcile by hand).
"""


class CheckoutError(Exception):
    status_code = 400
    code = "checkout_error"
    retryable = False

    def __init__(self, message=None, **extra):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        self.extra = extra

    def to_dict(self):
        return {"code": self.code, "retryable": self.retryable, **self.extra}


class InvalidRequest(CheckoutError):
    """Invalid request."""
    status_code = 400
    code = "invalid_request"


class CouponRejected(CheckoutError):
    """Coupon is invalid."""
    status_code = 400
    code = "coupon_rejected"

    def __init__(self, evaluation):
        super().__init__(evaluation.reason or "Invalid coupon", reason_code=evaluation.reason_code)
        self.evaluation = evaluation


class NotFound(CheckoutError):
    """Not found."""
    status_code = 404
    code = "not_found"


class StoreUnavailable(CheckoutError):
    """The order store is temporarily unavailable."""
    status_code = 503
    code = "store_unavailable"
    retryable = True


class CatalogUnavailable(StoreUnavailable):
    """Failed to load products."""
    code = "catalog_unavailable"


class OrphanedOrderError(CheckoutError):
    """Order was saved but its line items were not."""
    status_code = 500
    code = "order_items_failed"

    def __init__(self, order_id, message=None):
        super().__init__(message or "Failed to create order items", order_id=order_id)
        self.order_id = order_id


class WebhookSignatureError(CheckoutError):
    """Invalid HMAC."""
    status_code = 401
    code = "invalid_signature"


class GatewayError(CheckoutError):
    """Payment gateway request failed."""
    status_code = 502
    code = "gateway_error"


class GatewayTimeout(GatewayError):
    """Payment gateway timed out."""
    status_code = 504
    code = "gateway_timeout"
    retryable = True


class GatewayNotConfigured(GatewayError):
    """Payment gateway is not configured."""
    status_code = 503
    code = "gateway_not_configured"
