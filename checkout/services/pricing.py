# checkout/services/pricing.py
"""Checkout pricing shared by cash-on-delivery orders and gateway intents.

Both paths go through ``price_order`` so the amount sent to the payment
gateway and the amount later written to the order are the same numbers.
"""
from dataclasses import dataclass, field

from ..errors import CouponRejected, InvalidRequest
from ..utils.api import parse_iso8601, utcnow
from ..utils.money import D, Money, parse_amount, round_money, to_cents
from .cart_snapshot import build_cart_snapshot, load_catalog, requested_product_ids
from .coupon_service import validate_coupon

PAYMENT_METHODS = ("card", "cod")
PAYMENT_STATUSES = ("paid", "unpaid")


def _pick(data, *keys):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


@dataclass
class OrderRequest:
    """Order creation body. Accepts snake_case and the storefront's camelCase."""
    customer_email: str
    customer_name: str
    shipping_address: dict
    items: list
    order_id: str | None = None
    billing_address: dict | None = None
    notes: str | None = None
    coupon_code: str | None = None
    payment_method: str | None = None
    payment_status: str | None = None
    transaction_id: str | None = None
    paid_at: object = None
    shipping_cost: Money = field(default_factory=lambda: D(0))

    @classmethod
    def from_payload(cls, data):
        data = data if isinstance(data, dict) else {}
        items = _pick(data, "items")
        items = items if isinstance(items, list) else []

        customer_email = _pick(data, "customer_email", "customerEmail")
        customer_name = _pick(data, "customer_name", "customerName")
        shipping_address = _pick(data, "shipping_address", "shippingAddress")
        if not customer_email or not customer_name or not shipping_address:
            raise InvalidRequest("Missing required order fields")
        if not items:
            raise InvalidRequest("Cart is empty")

        payment_method = _pick(data, "payment_method", "paymentMethod")
        if payment_method is not None and payment_method not in PAYMENT_METHODS:
            raise InvalidRequest("payment_method must be 'card' or 'cod'")
        payment_status = _pick(data, "payment_status", "paymentStatus")
        if payment_status is not None and payment_status not in PAYMENT_STATUSES:
            raise InvalidRequest("payment_status must be 'paid' or 'unpaid'")

        raw_paid_at = _pick(data, "paid_at", "paidAt")
        paid_at = parse_iso8601(raw_paid_at) if raw_paid_at else None
        if raw_paid_at and paid_at is None:
            raise InvalidRequest("Invalid datetime format for paid_at")

        raw_shipping = _pick(data, "shipping_cost", "shippingCost")
        shipping_cost = parse_amount(raw_shipping) if raw_shipping not in (None, "") else D(0)
        if shipping_cost is None or shipping_cost < 0:
            raise InvalidRequest("shipping_cost must be 0 or more")

        order_id = _pick(data, "order_id", "orderId")
        order_id = str(order_id).strip() if order_id else None
        if order_id and len(order_id) > 64:
            raise InvalidRequest("order_id is too long")

        transaction_id = _pick(data, "transaction_id", "transactionId")

        return cls(
            customer_email=str(customer_email).strip(),
            customer_name=str(customer_name).strip(),
            shipping_address=shipping_address,
            billing_address=_pick(data, "billing_address", "billingAddress"),
            notes=_pick(data, "notes"),
            items=items,
            order_id=order_id or None,
            coupon_code=_pick(data, "coupon_code", "couponCode") or None,
            payment_method=payment_method,
            payment_status=payment_status,
            transaction_id=str(transaction_id) if transaction_id else None,
            paid_at=paid_at,
            shipping_cost=round_money(shipping_cost),
        )

    def customer(self):
        return {
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address or self.shipping_address,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    product_name: str
    product_image: str | None
    quantity: Money
    unit_price: Money
    total_price: Money

    def to_json(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_image": self.product_image,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
        }

    @classmethod
    def from_json(cls, data):
        return cls(
            product_id=data["product_id"],
            product_name=data.get("product_name") or "",
            product_image=data.get("product_image"),
            quantity=D(data["quantity"]),
            unit_price=D(data["unit_price"]),
            total_price=D(data["total_price"]),
        )


@dataclass(frozen=True)
class OrderDraft:
    lines: tuple
    subtotal: Money
    shipping_cost: Money
    discount_amount: Money
    total: Money
    coupon_id: str | None = None
    coupon_code: str | None = None

    @property
    def amount_cents(self) -> int:
        return to_cents(self.total)

    def to_json(self):
        return {
            "lines": [line.to_json() for line in self.lines],
            "subtotal": str(self.subtotal),
            "shipping_cost": str(self.shipping_cost),
            "discount_amount": str(self.discount_amount),
            "total": str(self.total),
            "coupon_id": self.coupon_id,
            "coupon_code": self.coupon_code,
        }

    @classmethod
    def from_json(cls, data):
        return cls(
            lines=tuple(PricedLine.from_json(line) for line in data.get("lines") or []),
            subtotal=D(data["subtotal"]),
            shipping_cost=D(data["shipping_cost"]),
            discount_amount=D(data["discount_amount"]),
            total=D(data["total"]),
            coupon_id=data.get("coupon_id"),
            coupon_code=data.get("coupon_code"),
        )


def order_total(subtotal, shipping_cost, discount_amount) -> Money:
    return round_money(max(D(0), D(subtotal) + D(shipping_cost) - D(discount_amount)))


def price_order(raw_items, coupon_code=None, user_id=None, shipping_cost=0, now=None) -> OrderDraft:
    """Price a cart from the catalog and apply ``coupon_code``.

    An invalid coupon rejects the whole order (``CouponRejected``); the
    discount is never silently dropped.
    """
    product_ids = requested_product_ids(raw_items)
    if not product_ids:
        raise InvalidRequest("Cart is empty")

    catalog = load_catalog(product_ids)
    snapshot = build_cart_snapshot(raw_items, catalog)
    if not snapshot.items or snapshot.subtotal <= 0:
        raise InvalidRequest("Cart is empty")

    lines = []
    for it in snapshot.items:
        product = catalog[it.product_id]
        lines.append(PricedLine(
            product_id=it.product_id,
            product_name=product.name,
            product_image=product.image_url,
            quantity=it.quantity,
            unit_price=round_money(it.price),
            total_price=round_money(it.line_total),
        ))
    # the stored line items must add up to the order subtotal
    subtotal = round_money(sum((line.total_price for line in lines), D(0)))

    coupon_id = coupon_code_snapshot = None
    discount = D(0)
    if coupon_code:
        validation = validate_coupon(coupon_code, raw_items, user_id=user_id, now=now or utcnow(), catalog=catalog)
        if not validation.valid:
            raise CouponRejected(validation.evaluation)
        coupon_id = str(validation.coupon.id)
        coupon_code_snapshot = validation.coupon.code
        discount = validation.discount_amount

    shipping_cost = round_money(shipping_cost)
    return OrderDraft(
        lines=tuple(lines),
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        discount_amount=discount,
        total=order_total(subtotal, shipping_cost, discount),
        coupon_id=coupon_id,
        coupon_code=coupon_code_snapshot,
    )
