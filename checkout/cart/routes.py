# checkout/cart/routes.py
from __future__ import annotations
import logging
from flask import current_app, request, jsonify

from ..utils.api import api_ok, api_error
from ..utils.decorators import optional_user_id
from ..utils.net import get_client_ip
from ..services.coupon_service import validate_coupon
from . import bp

logger = logging.getLogger(__name__)

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


@bp.post("/apply-coupon")
def apply_coupon():
    """
    Body: {"code": "SAVE20", "items": [{"product_id": "...", "quantity": 2}]}
    Prices come from the catalog; only ids and quantities are read from the body.
    """
    limiter = current_app.extensions["rate_limiter"]
    client_ip = get_client_ip()
    if not limiter.allow(client_ip):
        logger.info("apply-coupon throttled for %s", client_ip)
        return err("Too many attempts. Please try again shortly.", 429)

    data = request.get_json(silent=True) or {}
    items = data.get("items") if isinstance(data.get("items"), list) else []

    result = validate_coupon(data.get("code"), items, user_id=optional_user_id())
    if not result.valid:
        return err(result.evaluation.reason, 400, result.as_api())
    return ok("Coupon applied", result.as_api())
