# checkout/order/routes.py
from flask import request, jsonify

from ..utils.api import api_ok, api_error
from ..utils.decorators import optional_user_id
from ..services import order_ledger
from ..services.pricing import OrderRequest
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


@bp.post("")
def create_order():
    """
    Creates an order, or acts as an idempotent retry when ``order_id`` is
    already known (payment fields are merged, pricing is never rewritten).
    """
    req = OrderRequest.from_payload(request.get_json(silent=True))
    order = order_ledger.create_or_update_order(req, user_id=optional_user_id())
    resp = ok("order", {"order": order.as_api()})
    resp.headers["X-Order-Id"] = str(order.id)
    return resp


@bp.get("/<order_id>")
def get_order(order_id):
    o = order_ledger.get_order(order_id)
    if not o: return err("order not found", 404)
    # orders placed by a signed-in user are only visible to that user
    if o.user_id and o.user_id != optional_user_id():
        return err("order not found", 404)
    return ok("order", {"order": o.as_api()})
