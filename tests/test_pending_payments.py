from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from checkout.errors import InvalidRequest, StoreUnavailable
from checkout.extensions import db
from checkout.model import Order, PendingPayment
from checkout.services import pending_payments
from checkout.services.order_ledger import create_or_update_order
from checkout.services.pricing import OrderRequest, price_order


def request_for(body):
    return OrderRequest.from_payload(body)


def test_intent_freezes_priced_draft(order_body, make_coupon):
    make_coupon(max_discount_amount=Decimal("50"))
    intent = pending_payments.create_intent_for_request(
        request_for(order_body(order_id="pm-1", coupon_code="SAVE20", shipping_cost=200, payment_method="card"))
    )

    assert intent.id == "pm-1"
    assert intent.status == "pending"
    assert intent.amount_cents == 55000
    assert intent.discount_amount == Decimal("50.00")
    assert intent.coupon_code == "SAVE20"

    draft = pending_payments.intent_draft(intent)
    assert draft.total == Decimal("550.00")
    assert len(draft.lines) == 1
    assert intent.draft["customer"]["customer_email"] == "shopper@example.com"
    assert Order.query.count() == 0


def test_resubmission_returns_the_stored_intent(order_body, catalog):
    first = pending_payments.create_intent_for_request(request_for(order_body(order_id="pm-2")))
    again = pending_payments.create_intent_for_request(
        request_for(order_body(order_id="pm-2", items=[{"product_id": catalog["C"], "quantity": 1}]))
    )
    assert again.id == first.id
    assert again.amount_cents == 40000
    assert PendingPayment.query.count() == 1


def test_intent_for_existing_order_is_refused(order_body):
    create_or_update_order(request_for(order_body(order_id="pm-3")))
    draft_req = request_for(order_body(order_id="pm-3"))
    with pytest.raises(InvalidRequest):
        pending_payments.create_intent_for_request(draft_req)


def test_consume_is_idempotent(order_body):
    intent = pending_payments.create_intent_for_request(request_for(order_body(order_id="pm-4")))

    pending_payments.consume_intent("pm-4")
    pending_payments.consume_intent("pm-4")
    pending_payments.consume_intent("missing")

    intent = pending_payments.get_intent("pm-4")
    assert intent.is_consumed
    assert intent.consumed_at is not None


def test_checkout_with_intent_id_uses_frozen_amounts(order_body, catalog, make_coupon):
    coupon = make_coupon(value=Decimal("10"))
    pending_payments.create_intent_for_request(request_for(order_body(order_id="pm-5", coupon_code="SAVE20")))

    # the coupon changes after the gateway was told the amount
    coupon.value = Decimal("50")
    db.session.commit()

    order = create_or_update_order(request_for(order_body(order_id="pm-5", coupon_code="SAVE20")))
    assert order.discount_amount == Decimal("40.00")
    assert order.total == Decimal("360.00")
    assert pending_payments.get_intent("pm-5").is_consumed


def test_attach_gateway_order(order_body):
    intent = pending_payments.create_intent_for_request(request_for(order_body(order_id="pm-6")))
    pending_payments.attach_gateway_order(intent, 9001)
    assert pending_payments.get_intent("pm-6").gateway_order_id == "9001"


def test_intent_during_store_outage_is_retryable(order_body, monkeypatch):
    req = request_for(order_body(order_id="pm-down"))
    draft = price_order(req.items, shipping_cost=req.shipping_cost)

    def down(*args):
        raise OperationalError("SELECT orders", {}, Exception("connection reset"))

    monkeypatch.setattr(db.session, "get", down)
    with pytest.raises(StoreUnavailable):
        pending_payments.create_intent(draft, req.customer(), intent_id="pm-down")
    monkeypatch.undo()
    assert PendingPayment.query.count() == 0
