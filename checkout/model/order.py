from ..extensions import db
from sqlalchemy.sql import func
from .types import GUID
from ..utils.api import isoformat

PAYMENT_PAID = "paid"
PAYMENT_UNPAID = "unpaid"

class Order(db.Model):
    __tablename__ = "orders"

    # external id shared with the payment gateway, or a generated uuid
    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    status = db.Column(db.String(20), default="pending", index=True)

    # Payment
    payment_method = db.Column(db.String(16), nullable=False, default="card")
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_UNPAID, index=True)
    transaction_id = db.Column(db.String(128))
    paid_at = db.Column(db.DateTime)

    # Money snapshot (never rewritten after insert)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Coupon snapshot; the code survives coupon edits
    coupon_id = db.Column(GUID(), nullable=True, index=True)
    coupon_code = db.Column(db.String(64))

    # Customer snapshot
    customer_name = db.Column(db.String(120))
    customer_email = db.Column(db.String(255))
    shipping_address = db.Column(db.JSON)
    billing_address = db.Column(db.JSON)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="OrderItem.id.asc()",
    )

    @property
    def is_paid(self):
        return self.payment_status == PAYMENT_PAID

    def as_api(self):
        return {
            "id": self.id,
            "status": self.status,
            "user_id": self.user_id,
            "payment": {
                "method": self.payment_method,
                "status": self.payment_status,
                "transaction_id": self.transaction_id,
                "paid_at": isoformat(self.paid_at),
            },
            "customer": {
                "name": self.customer_name,
                "email": self.customer_email,
                "shipping_address": self.shipping_address,
                "billing_address": self.billing_address,
            },
            "money": {
                "subtotal": float(self.subtotal or 0),
                "shipping_cost": float(self.shipping_cost or 0),
                "discount_amount": float(self.discount_amount or 0),
                "total": float(self.total or 0),
                "total_amount_cents": self.total_amount_cents,
            },
            "coupon": {"id": str(self.coupon_id), "code": self.coupon_code} if self.coupon_id else None,
            "notes": self.notes,
            "items": [i.as_api() for i in self.items],
            "created_at": isoformat(self.created_at),
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.String(64), index=True)
    product_name = db.Column(db.String(255))
    product_image = db.Column(db.String(1024))

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    def as_api(self):
        qty = self.quantity
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_image": self.product_image,
            "quantity": int(qty) if qty is not None and qty == int(qty) else float(qty or 0),
            "unit_price": float(self.unit_price or 0),
            "total_price": float(self.total_price or 0),
        }
