# checkout/services/order_ledger.py
"""The order ledger: idempotent order creation and payment updates.

Concurrency is handled by the store's unique constraints, not by locks.
Every insert that can race (the order row keyed by its external id, a
coupon redemption keyed by coupon + order) is written as "try the insert,
treat the unique violation as success".

Each step commits on its own. An order row that committed while its line
items did not is reported as ``OrphanedOrderError``; a later retry for the
same external id puts the items back when the priced draft is still known.
"""
import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import OrphanedOrderError, StoreUnavailable
from ..extensions import db
from ..model import Coupon, CouponRedemption, Order, OrderItem
from ..model.order import PAYMENT_PAID, PAYMENT_UNPAID
from ..model.types import parse_uuid
from ..utils.api import utcnow
from ..utils.money import D
from . import pending_payments
from .pricing import OrderDraft, OrderRequest, price_order

logger = logging.getLogger(__name__)


def get_order(order_id):
    if not order_id:
        return None
    try:
        return db.session.get(Order, order_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e


def _commit():
    try:
        db.session.commit()
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e


def _insert_items(order: Order, draft: OrderDraft):
    for line in draft.lines:
        db.session.add(OrderItem(
            order_id=order.id,
            product_id=line.product_id,
            product_name=line.product_name,
            product_image=line.product_image,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
        ))
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("order %s committed without line items: %s", order.id, e)
        raise OrphanedOrderError(order.id) from e


def record_redemption(order: Order) -> bool:
    """Insert the redemption row for a discounted order.

    Returns True when this call inserted it. A concurrent insert that wins
    the unique constraint counts as success.
    """
    if not order.coupon_id or D(order.discount_amount) <= 0:
        return False

    try:
        exists = (
            db.session.query(CouponRedemption.id)
            .filter(CouponRedemption.coupon_id == order.coupon_id, CouponRedemption.order_id == order.id)
            .first()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    if exists:
        return False

    redemption = CouponRedemption(
        coupon_id=order.coupon_id,
        order_id=order.id,
        user_id=order.user_id,
        discount_amount=order.discount_amount,
    )
    try:
        db.session.add(redemption)
        db.session.flush()
        # counted in the same transaction as the row that justifies it
        db.session.execute(
            db.update(Coupon)
            .where(Coupon.id == order.coupon_id)
            .values(used_count=Coupon.used_count + 1)
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("redemption for order %s already recorded by a concurrent request", order.id)
        return False
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    logger.info("coupon %s redeemed by order %s for %s", order.coupon_code, order.id, order.discount_amount)
    return True


def persist_order(order_id, draft: OrderDraft, customer: dict, user_id=None,
                  payment_method="card", payment_status=PAYMENT_UNPAID,
                  transaction_id=None, paid_at=None):
    """Insert order, then items, then redemption. Returns ``(order, created)``.

    ``created`` is False when another request inserted the same external id
    first; the caller then treats this call as a retry of that one.
    """
    order = Order(
        id=order_id,
        user_id=user_id,
        status="pending",
        payment_method=payment_method,
        payment_status=payment_status,
        transaction_id=transaction_id,
        paid_at=paid_at,
        subtotal=draft.subtotal,
        shipping_cost=draft.shipping_cost,
        discount_amount=draft.discount_amount,
        total=draft.total,
        total_amount_cents=draft.amount_cents,
        coupon_id=parse_uuid(draft.coupon_id) if draft.coupon_id else None,
        coupon_code=draft.coupon_code,
        customer_email=customer.get("customer_email"),
        customer_name=customer.get("customer_name"),
        shipping_address=customer.get("shipping_address"),
        billing_address=customer.get("billing_address") or customer.get("shipping_address"),
        notes=customer.get("notes"),
    )
    db.session.add(order)
    try:
        _commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("order %s was created concurrently, treating as retry", order_id)
        existing = get_order(order_id)
        if existing is None:
            raise StoreUnavailable()
        return existing, False

    _insert_items(order, draft)
    record_redemption(order)
    return order, True


def create_order_from_intent(intent, payment_status=PAYMENT_UNPAID, transaction_id=None, paid_at=None):
    """Promote a pending intent using its frozen draft, then consume it."""
    draft = pending_payments.intent_draft(intent)
    order, created = persist_order(
        intent.id,
        draft,
        customer=intent.draft.get("customer") or {},
        user_id=intent.user_id,
        payment_method=intent.payment_method,
        payment_status=payment_status,
        transaction_id=transaction_id,
        paid_at=paid_at,
    )
    pending_payments.consume_intent(intent.id)
    return order, created


def repair_items(order: Order):
    """Re-insert missing line items from the intent draft.

    An order still without items and with no draft to rebuild them from
    stays orphaned: ``OrphanedOrderError`` is raised again on every retry.
    """
    if order.items:
        return
    intent = pending_payments.get_intent(order.id)
    if intent is None:
        logger.error("order %s has no line items and no stored draft to rebuild them from", order.id)
        raise OrphanedOrderError(order.id)
    _insert_items(order, pending_payments.intent_draft(intent))
    logger.info("order %s line items restored from its pending payment", order.id)


def mark_paid(order: Order, transaction_id=None, paid_at=None, amount_cents=None):
    """Move an unpaid order to paid. Pricing fields are left alone."""
    if order.is_paid:
        return order
    order.payment_status = PAYMENT_PAID
    if transaction_id:
        order.transaction_id = str(transaction_id)
    order.paid_at = order.paid_at or paid_at or utcnow()
    if not order.total_amount_cents and amount_cents:
        order.total_amount_cents = int(amount_cents)
    _commit()
    return order


def _merge_existing(order: Order, req: OrderRequest, now):
    """Idempotent retry: only payment fields move, and only forward."""
    status_change = (
        req.payment_status is not None
        and req.payment_status != order.payment_status
        and not order.is_paid
    )
    changed = False
    if status_change:
        order.payment_status = req.payment_status
        changed = True
    if req.payment_method and req.payment_method != order.payment_method and not order.is_paid:
        order.payment_method = req.payment_method
        changed = True
    if req.transaction_id and (order.transaction_id is None or status_change):
        order.transaction_id = req.transaction_id
        changed = True
    if req.paid_at and (order.paid_at is None or status_change):
        order.paid_at = req.paid_at
        changed = True
    if order.is_paid and order.paid_at is None:
        order.paid_at = now
        changed = True
    if changed:
        _commit()

    record_redemption(order)
    pending_payments.consume_intent(order.id)
    repair_items(order)
    return order


def create_or_update_order(req: OrderRequest, user_id=None, now=None) -> Order:
    now = now or utcnow()

    if req.order_id:
        existing = get_order(req.order_id)
        if existing is not None:
            return _merge_existing(existing, req, now)

        intent = pending_payments.get_intent(req.order_id)
        if intent is not None and not intent.is_consumed:
            # amounts come from the intent, not from re-pricing the request
            order, _ = create_order_from_intent(intent)
            return _merge_existing(order, req, now)

    draft = price_order(req.items, req.coupon_code, user_id=user_id, shipping_cost=req.shipping_cost, now=now)

    payment_status = req.payment_status or PAYMENT_UNPAID
    paid_at = req.paid_at or (now if payment_status == PAYMENT_PAID else None)
    order, created = persist_order(
        req.order_id or str(uuid.uuid4()),
        draft,
        customer=req.customer(),
        user_id=user_id,
        payment_method=req.payment_method or "card",
        payment_status=payment_status,
        transaction_id=req.transaction_id,
        paid_at=paid_at,
    )
    if not created:
        return _merge_existing(order, req, now)
    return order
