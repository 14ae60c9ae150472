# checkout/services/pending_payments.py
"""Order intents held while a redirect-based gateway confirms payment."""
import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import InvalidRequest, StoreUnavailable
from ..extensions import db
from ..model import Order, PendingPayment
from ..model.pending_payment import INTENT_CONSUMED, INTENT_PENDING
from ..utils.api import utcnow
from .pricing import OrderDraft, price_order

logger = logging.getLogger(__name__)


def get_intent(intent_id):
    if not intent_id:
        return None
    try:
        return db.session.get(PendingPayment, intent_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e


def create_intent(draft: OrderDraft, customer: dict, intent_id=None, user_id=None, payment_method="card"):
    """Persist a priced draft under ``intent_id``.

    Re-submitting the same id returns the intent already stored, with its
    original amounts.
    """
    intent_id = intent_id or str(uuid.uuid4())
    try:
        existing_order = db.session.get(Order, intent_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    if existing_order is not None:
        raise InvalidRequest("Order already exists")

    intent = PendingPayment(
        id=intent_id,
        status=INTENT_PENDING,
        user_id=user_id,
        payment_method=payment_method,
        subtotal=draft.subtotal,
        shipping_cost=draft.shipping_cost,
        discount_amount=draft.discount_amount,
        total=draft.total,
        amount_cents=draft.amount_cents,
        coupon_id=draft.coupon_id,
        coupon_code=draft.coupon_code,
        draft={**draft.to_json(), "customer": customer},
    )
    db.session.add(intent)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("pending payment %s already exists, reusing it", intent_id)
        return get_intent(intent_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    return intent


def create_intent_for_request(req, user_id=None, now=None):
    """Price ``req`` exactly as synchronous checkout would and store it as an intent."""
    existing = get_intent(req.order_id)
    if existing is not None:
        return existing
    draft = price_order(req.items, req.coupon_code, user_id=user_id, shipping_cost=req.shipping_cost, now=now)
    return create_intent(
        draft,
        req.customer(),
        intent_id=req.order_id,
        user_id=user_id,
        payment_method=req.payment_method or "card",
    )


def intent_draft(intent: PendingPayment) -> OrderDraft:
    return OrderDraft.from_json(intent.draft)


def consume_intent(intent_id):
    """Mark the intent consumed. Consuming twice, or a missing intent, is a no-op."""
    try:
        result = db.session.execute(
            db.update(PendingPayment)
            .where(PendingPayment.id == intent_id, PendingPayment.status == INTENT_PENDING)
            .values(status=INTENT_CONSUMED, consumed_at=utcnow())
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    if result.rowcount:
        logger.info("pending payment %s consumed", intent_id)


def attach_gateway_order(intent: PendingPayment, gateway_order_id):
    intent.gateway_order_id = str(gateway_order_id) if gateway_order_id is not None else None
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
