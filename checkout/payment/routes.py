# checkout/payment/routes.py
import logging
from urllib.parse import urlencode

from flask import current_app, redirect, request, jsonify

from ..utils.api import api_ok, api_error
from ..utils.decorators import optional_user_id
from ..utils.money import D, to_cents
from ..utils.net import pick_param
from ..services import pending_payments, webhook
from ..services.paymob import require_gateway
from ..services.pricing import OrderRequest
from . import bp

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes", "y"}
_FALSY = {"false", "0", "no", "n"}

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


def _quantity(raw):
    qty = D(raw)
    return int(qty) if qty == int(qty) else float(qty)


def _billing_data(req: OrderRequest):
    address = req.billing_address or req.shipping_address or {}
    first, _, last = req.customer_name.partition(" ")
    # Paymob rejects empty billing fields, "NA" is its documented placeholder
    def field(*keys):
        for k in keys:
            if address.get(k):
                return str(address[k])
        return "NA"
    return {
        "first_name": first or "NA",
        "last_name": last or "NA",
        "email": req.customer_email,
        "phone_number": field("phone", "phone_number"),
        "street": field("street", "address", "line1"),
        "building": field("building"),
        "floor": field("floor"),
        "apartment": field("apartment"),
        "city": field("city"),
        "state": field("state", "governorate"),
        "country": field("country"),
        "postal_code": field("postal_code", "zip"),
    }


@bp.post("/paymob/intents")
def create_payment_intent():
    """
    Prices the cart, freezes it as a pending payment and opens a Paymob
    payment for exactly that amount. The order itself is only created once
    the gateway confirms (webhook) or the storefront reports the redirect.
    """
    req = OrderRequest.from_payload(request.get_json(silent=True))
    gateway = require_gateway(current_app.extensions.get("payment_gateway"))

    intent = pending_payments.create_intent_for_request(req, user_id=optional_user_id())
    if intent.is_consumed:
        return err("Order already exists", 409, {"order_id": intent.id})

    items = [
        {
            "name": line["product_name"] or line["product_id"],
            "amount_cents": to_cents(line["unit_price"]),
            "quantity": _quantity(line["quantity"]),
        }
        for line in intent.draft.get("lines", [])
    ]
    payment = gateway.create_payment(intent.amount_cents, intent.id, _billing_data(req), items)
    pending_payments.attach_gateway_order(intent, payment.get("gateway_order_id"))

    return ok("payment created", {
        "intent": intent.as_api(),
        "iframe_url": payment["iframe_url"],
        "merchant_order_id": intent.id,
    }, 201)


@bp.post("/paymob/webhook")
def paymob_webhook():
    payload = request.get_json(silent=True)
    payload = payload if isinstance(payload, dict) else {}
    received = request.args.get("hmac") or request.headers.get("hmac") or payload.get("hmac")

    result = webhook.reconcile_payment(payload, received, current_app.config.get("PAYMOB_HMAC_SECRET"))
    status = 200 if result.ok else 404
    return jsonify(result.as_api()), status


@bp.route("/paymob/response", methods=["GET", "POST"])
def paymob_response():
    """Browser redirect from Paymob; normalized and forwarded to the storefront."""
    success_raw = pick_param("success") or pick_param("is_success") or pick_param("isSuccess")
    success = None
    if success_raw:
        normalized = success_raw.lower()
        if normalized in _TRUTHY:
            success = "true"
        elif normalized in _FALSY:
            success = "false"

    order_id = (pick_param("merchant_order_id") or pick_param("order_id")
                or pick_param("order") or pick_param("orderId"))
    transaction_id = pick_param("id") or pick_param("transaction_id") or pick_param("txn_id")

    base_url = current_app.config.get("APP_BASE_URL")
    if not base_url:
        return jsonify({"ok": True, "success": success, "order_id": order_id, "transaction_id": transaction_id})

    params = {k: v for k, v in (("success", success), ("order_id", order_id), ("id", transaction_id)) if v}
    target = base_url.rstrip("/") + "/payment-result"
    if params:
        target += "?" + urlencode(params)
    return redirect(target, code=302)
