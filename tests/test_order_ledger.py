"""
Order ledger: pricing snapshot, idempotent retries, redemption bookkeeping.
"""
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from checkout.errors import CouponRejected, InvalidRequest, OrphanedOrderError
from checkout.extensions import db
from checkout.model import Coupon, CouponRedemption, Order, OrderItem, Product
from checkout.services import order_ledger
from checkout.services.order_ledger import create_or_update_order, record_redemption
from checkout.services.pricing import OrderRequest


def place(body, user_id=None):
    return create_or_update_order(OrderRequest.from_payload(body), user_id=user_id)


@pytest.fixture
def capped(make_coupon):
    return make_coupon(code="SAVE20", value=Decimal("20"), max_discount_amount=Decimal("50"))


def test_order_snapshots_catalog_prices_and_coupon(order_body, capped):
    order = place(order_body(coupon_code="save20", shipping_cost="200"))

    assert order.subtotal == Decimal("400.00")
    assert order.discount_amount == Decimal("50.00")
    assert order.shipping_cost == Decimal("200.00")
    assert order.total == Decimal("550.00")
    assert order.total_amount_cents == 55000
    assert order.coupon_code == "SAVE20"
    assert order.coupon_id == capped.id
    assert order.payment_status == "unpaid"

    assert len(order.items) == 1
    line = order.items[0]
    assert (line.product_name, line.unit_price, line.total_price) == ("Runner", Decimal("200.00"), Decimal("400.00"))
    assert line.product_image == "/img/a.png"

    assert CouponRedemption.query.count() == 1
    assert db.session.get(Coupon, capped.id).used_count == 1


def test_client_prices_are_ignored(order_body, catalog):
    body = order_body(items=[{"product_id": catalog["B"], "quantity": 1, "price": 1}])
    order = place(body)
    assert order.subtotal == Decimal("100.00")
    assert order.total == Decimal("100.00")


def test_no_redemption_without_coupon(order_body):
    place(order_body())
    assert CouponRedemption.query.count() == 0


def test_retry_with_same_order_id_is_idempotent(order_body, capped):
    body = order_body(order_id="ext-1", coupon_code="SAVE20")
    first = place(body)
    second = place(body)

    assert first.id == second.id == "ext-1"
    assert Order.query.count() == 1
    assert OrderItem.query.count() == 1
    assert CouponRedemption.query.count() == 1
    assert db.session.get(Coupon, capped.id).used_count == 1


def test_retry_keeps_original_amounts(order_body, catalog):
    place(order_body(order_id="ext-2"))
    again = place(order_body(order_id="ext-2", items=[{"product_id": catalog["C"], "quantity": 1}]))
    assert again.total == Decimal("400.00")
    assert [i.product_id for i in again.items] == [catalog["A"]]


def test_retry_moves_payment_status_forward_only(order_body):
    place(order_body(order_id="ext-3"))

    paid = place(order_body(order_id="ext-3", payment_status="paid", transaction_id="tx-9"))
    assert paid.payment_status == "paid"
    assert paid.transaction_id == "tx-9"
    assert paid.paid_at is not None

    again = place(order_body(order_id="ext-3", payment_status="unpaid"))
    assert again.payment_status == "paid"
    assert again.transaction_id == "tx-9"


def test_paid_on_create_sets_paid_at(order_body):
    order = place(order_body(payment_status="paid", payment_method="card"))
    assert order.is_paid
    assert order.paid_at is not None


def test_invalid_coupon_rejects_the_whole_order(order_body, make_coupon):
    make_coupon(code="BIG", min_order_amount=Decimal("1000"))
    with pytest.raises(CouponRejected) as exc:
        place(order_body(coupon_code="BIG"))
    assert exc.value.evaluation.reason_code == "min_order"
    assert Order.query.count() == 0


def test_unknown_coupon_rejects_the_whole_order(order_body):
    with pytest.raises(CouponRejected):
        place(order_body(coupon_code="NOPE"))
    assert Order.query.count() == 0


def test_cart_of_unknown_products_is_empty(order_body):
    body = order_body(items=[{"product_id": "00000000-0000-0000-0000-000000000000", "quantity": 1}])
    with pytest.raises(InvalidRequest) as exc:
        place(body)
    assert exc.value.message == "Cart is empty"


def test_total_never_goes_negative(order_body, catalog, make_coupon):
    make_coupon(code="HUGE", type="fixed", value=Decimal("1000"))
    order = place(order_body(items=[{"product_id": catalog["C"], "quantity": 1}], coupon_code="HUGE"))
    assert order.discount_amount == Decimal("50.00")
    assert order.total == Decimal("0.00")


def test_redemption_is_recorded_once(order_body, capped):
    order = place(order_body(coupon_code="SAVE20"))
    assert record_redemption(order) is False
    assert CouponRedemption.query.count() == 1


def test_concurrent_redemption_insert_counts_as_success(order_body, capped, monkeypatch):
    order = place(order_body(coupon_code="SAVE20"))

    class Blind:
        """The existence check misses the row a concurrent request just wrote."""
        def filter(self, *args):
            return self

        def first(self):
            return None

    monkeypatch.setattr(db.session, "query", lambda *args: Blind())
    assert record_redemption(order) is False
    monkeypatch.undo()

    assert CouponRedemption.query.count() == 1
    assert db.session.get(Coupon, capped.id).used_count == 1


def test_failed_item_insert_reports_orphaned_order(order_body, monkeypatch):
    real_commit = db.session.commit
    calls = []

    def flaky_commit():
        calls.append(1)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))
        return real_commit()

    monkeypatch.setattr(db.session, "commit", flaky_commit)
    with pytest.raises(OrphanedOrderError) as exc:
        place(order_body(order_id="ext-orphan"))
    monkeypatch.undo()

    assert exc.value.order_id == "ext-orphan"
    assert exc.value.status_code == 500
    orphan = order_ledger.get_order("ext-orphan")
    assert orphan is not None
    assert orphan.items == []


def test_resubmitting_an_orphan_without_draft_fails_again(order_body, capped, monkeypatch):
    real_commit = db.session.commit
    calls = []

    def flaky_commit():
        calls.append(1)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))
        return real_commit()

    body = order_body(order_id="ext-orphan-2", coupon_code="SAVE20")
    monkeypatch.setattr(db.session, "commit", flaky_commit)
    with pytest.raises(OrphanedOrderError):
        place(body)
    monkeypatch.undo()

    with pytest.raises(OrphanedOrderError) as exc:
        place(body)
    assert exc.value.order_id == "ext-orphan-2"
    assert Order.query.count() == 1
    assert OrderItem.query.count() == 0
    # the discount on the stored order is still accounted for
    assert CouponRedemption.query.count() == 1


def test_order_subtotal_matches_its_line_items(order_body):
    cheap = Product(name="Sticker", price=Decimal("0.33"))
    db.session.add(cheap)
    db.session.commit()
    pid = str(cheap.id)

    order = place(order_body(items=[
        {"product_id": pid, "quantity": "0.5"},
        {"product_id": pid, "quantity": "0.5"},
    ]))

    assert [i.total_price for i in order.items] == [Decimal("0.17"), Decimal("0.17")]
    assert order.subtotal == Decimal("0.34")
    assert order.subtotal == sum(i.total_price for i in order.items)
    assert order.total == Decimal("0.34")
