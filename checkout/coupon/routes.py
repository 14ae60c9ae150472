# checkout/coupon/routes.py
from __future__ import annotations
from flask import request, jsonify

from ..utils.api import api_ok, api_error
from ..utils.decorators import role_required
from ..services import coupon_service
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


@bp.post("")
@role_required("admin")
def create_coupon():
    data = request.get_json(silent=True) or {}
    c = coupon_service.create_coupon(data)
    return ok("Coupon created", {"coupon": c.as_api()}, 201)


@bp.get("")
@role_required("admin")
def list_coupons():
    active = request.args.get("active")
    items = coupon_service.list_coupons(None if active is None else active.lower() == "true")
    return ok("ok", {"coupons": [c.as_api() for c in items]})


@bp.patch("/<coupon_id>/toggle")
@role_required("admin")
def toggle_coupon(coupon_id):
    c = coupon_service.toggle_coupon(coupon_id)
    return ok("Coupon updated", {"coupon": c.as_api()})


@bp.delete("/<coupon_id>")
@role_required("admin")
def delete_coupon(coupon_id):
    c = coupon_service.soft_delete_coupon(coupon_id)
    return ok("Coupon deleted", {"coupon": c.as_api()})


@bp.get("/<coupon_id>/redemptions")
@role_required("admin")
def coupon_redemptions(coupon_id):
    rows = coupon_service.list_redemptions(coupon_id)
    return ok("ok", {"redemptions": [r.as_api() for r in rows]})
