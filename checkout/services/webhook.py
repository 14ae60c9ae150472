# checkout/services/webhook.py
"""Paymob "transaction processed" callbacks.

Per external order id the ledger moves ``unknown -> pending -> paid`` and
``paid`` is terminal. Deliveries are at-least-once and may arrive before,
after or alongside the browser redirect that also reports the payment, so
every branch below is safe to run again for the same event.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass

from ..errors import WebhookSignatureError
from ..model.order import PAYMENT_PAID
from ..utils.api import utcnow
from . import order_ledger, pending_payments

logger = logging.getLogger(__name__)

# Paymob's documented concatenation order for transaction callbacks.
HMAC_FIELDS = (
    "obj.amount_cents",
    "obj.created_at",
    "obj.currency",
    "obj.error_occured",
    "obj.has_parent_transaction",
    "obj.id",
    "obj.integration_id",
    "obj.is_3d_secure",
    "obj.is_auth",
    "obj.is_capture",
    "obj.is_refunded",
    "obj.is_standalone_payment",
    "obj.is_voided",
    "obj.order.id",
    "obj.owner",
    "obj.pending",
    "obj.source_data.pan",
    "obj.source_data.sub_type",
    "obj.source_data.type",
    "obj.success",
)

PAID = "paid"
UPDATED = "updated"
ALREADY_PAID = "already_paid"
IGNORED = "ignored"
ORDER_NOT_FOUND = "order_not_found"

_TRUTHY = {"true", "1", "yes", "y"}


def _value_at(payload, path):
    node = payload
    for key in path.split("."):
        if isinstance(node, dict) and key in node:
            node = node[key]
        else:
            return None
    return node


def _as_signed_text(value):
    # match the gateway's JavaScript-style stringification
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def signing_string(payload, fields=HMAC_FIELDS):
    return "".join(_as_signed_text(_value_at(payload, field)) for field in fields)


def compute_signature(payload, secret, fields=HMAC_FIELDS):
    return hmac.new(secret.encode(), signing_string(payload, fields).encode(), hashlib.sha512).hexdigest()


def verify_signature(payload, received, secret):
    """Raise WebhookSignatureError unless ``received`` matches; no secret means trusted."""
    if not secret:
        logger.warning("webhook accepted without signature check: PAYMOB_HMAC_SECRET is not configured")
        return
    if not received:
        logger.warning("webhook rejected: missing hmac")
        raise WebhookSignatureError("Missing HMAC")
    expected = compute_signature(payload, secret)
    if not hmac.compare_digest(expected.lower(), str(received).strip().lower()):
        logger.warning("webhook rejected: hmac mismatch for transaction %s", _value_at(payload, "obj.id"))
        raise WebhookSignatureError("Invalid HMAC")


@dataclass(frozen=True)
class PaymentEvent:
    order_id: str | None
    transaction_id: str | None
    amount_cents: int
    success: bool
    pending: bool

    @classmethod
    def from_payload(cls, payload):
        obj = payload.get("obj") if isinstance(payload, dict) else None
        obj = obj if isinstance(obj, dict) else {}
        order = obj.get("order") if isinstance(obj.get("order"), dict) else {}
        merchant_order_id = order.get("merchant_order_id") or obj.get("merchant_order_id")
        transaction_id = obj.get("id")
        try:
            amount_cents = int(obj.get("amount_cents") or 0)
        except (TypeError, ValueError):
            amount_cents = 0
        return cls(
            order_id=str(merchant_order_id) if merchant_order_id else None,
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            amount_cents=amount_cents,
            success=_as_bool(obj.get("success")),
            pending=_as_bool(obj.get("pending")),
        )


@dataclass(frozen=True)
class ReconcileResult:
    outcome: str
    order_id: str | None = None

    @property
    def ok(self):
        return self.outcome != ORDER_NOT_FOUND

    def as_api(self):
        return {"ok": self.ok, "status": self.outcome, "order_id": self.order_id}


def reconcile_payment(payload, received_signature, secret, now=None) -> ReconcileResult:
    """Verify the callback and apply it to the ledger exactly once."""
    verify_signature(payload, received_signature, secret)

    event = PaymentEvent.from_payload(payload)
    if not event.success or event.pending:
        logger.info("webhook for %s acknowledged without changes (success=%s, pending=%s)",
                    event.order_id, event.success, event.pending)
        return ReconcileResult(IGNORED, event.order_id)

    if not event.order_id:
        logger.warning("successful webhook without merchant order id (transaction %s)", event.transaction_id)
        return ReconcileResult(ORDER_NOT_FOUND)

    now = now or utcnow()
    order = order_ledger.get_order(event.order_id)

    if order is None:
        intent = pending_payments.get_intent(event.order_id)
        if intent is None:
            # never fabricate an order from webhook data alone
            logger.warning("webhook for unknown order %s (transaction %s)", event.order_id, event.transaction_id)
            return ReconcileResult(ORDER_NOT_FOUND, event.order_id)
        order, created = order_ledger.create_order_from_intent(
            intent,
            payment_status=PAYMENT_PAID,
            transaction_id=event.transaction_id,
            paid_at=now,
        )
        if created:
            logger.info("order %s created from pending payment (transaction %s)", order.id, event.transaction_id)
            return ReconcileResult(PAID, order.id)

    # an orphan without a draft raises from repair_items so the gateway retries
    if order.is_paid:
        order_ledger.record_redemption(order)
        pending_payments.consume_intent(order.id)
        order_ledger.repair_items(order)
        return ReconcileResult(ALREADY_PAID, order.id)

    order_ledger.mark_paid(order, transaction_id=event.transaction_id, paid_at=now, amount_cents=event.amount_cents)
    order_ledger.record_redemption(order)
    pending_payments.consume_intent(order.id)
    order_ledger.repair_items(order)
    logger.info("order %s marked paid (transaction %s)", order.id, event.transaction_id)
    return ReconcileResult(UPDATED, order.id)
