# checkout/model/pending_payment.py
from ..extensions import db
from sqlalchemy.sql import func
from .types import GUID
from ..utils.api import isoformat

INTENT_PENDING = "pending"
INTENT_CONSUMED = "consumed"

class PendingPayment(db.Model):
    """A priced order intent awaiting gateway confirmation.

    The amounts are frozen here when the intent is created; the order
    promoted from it later copies them verbatim.
    """
    __tablename__ = "pending_payments"

    id = db.Column(db.String(64), primary_key=True)   # merchant order id sent to the gateway
    status = db.Column(db.String(16), nullable=False, default=INTENT_PENDING, index=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    payment_method = db.Column(db.String(16), nullable=False, default="card")

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    coupon_id = db.Column(GUID(), nullable=True)
    coupon_code = db.Column(db.String(64))

    # priced line items + customer/shipping data, money as strings
    draft = db.Column(db.JSON, nullable=False)

    gateway_order_id = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, server_default=func.now())
    consumed_at = db.Column(db.DateTime)

    @property
    def is_consumed(self):
        return self.status == INTENT_CONSUMED

    def as_api(self):
        return {
            "id": self.id,
            "status": self.status,
            "subtotal": float(self.subtotal or 0),
            "shipping_cost": float(self.shipping_cost or 0),
            "discount_amount": float(self.discount_amount or 0),
            "total": float(self.total or 0),
            "amount_cents": self.amount_cents,
            "coupon_code": self.coupon_code,
            "gateway_order_id": self.gateway_order_id,
            "created_at": isoformat(self.created_at),
            "consumed_at": isoformat(self.consumed_at),
        }
