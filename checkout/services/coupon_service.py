# checkout/services/coupon_service.py
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import InvalidRequest, NotFound, StoreUnavailable
from ..extensions import db
from ..model import Coupon, CouponRedemption
from ..model.coupon import COUPON_TYPES
from ..model.types import parse_uuid
from ..utils.api import parse_iso8601, utcnow
from ..utils.money import parse_amount
from . import coupon_rules
from .cart_snapshot import build_cart_snapshot, load_catalog, requested_product_ids
from .coupon_catalog import find_active_by_code, normalize_code, user_redemption_count
from .coupon_rules import CouponEvaluation, evaluate_coupon


@dataclass(frozen=True)
class CouponValidation:
    evaluation: CouponEvaluation
    coupon: Coupon | None = None
    normalized_code: str | None = None

    @property
    def valid(self):
        return self.evaluation.valid

    @property
    def discount_amount(self):
        return self.evaluation.discount_amount

    def as_api(self):
        data = self.evaluation.as_api()
        if self.normalized_code:
            data["normalized_code"] = self.normalized_code
        if self.coupon is not None and self.evaluation.valid:
            data["coupon"] = self.coupon.as_api()
        return data


def validate_coupon(code, raw_items, user_id=None, now=None, catalog=None) -> CouponValidation:
    """Resolve ``code`` and evaluate it against a cart priced from the catalog.

    ``catalog`` may be passed in when the caller already loaded it for the
    same cart, so order creation does not hit the catalog twice.
    """
    now = now or utcnow()
    normalized = normalize_code(code)
    if not normalized:
        return CouponValidation(CouponEvaluation.rejected(coupon_rules.INVALID_CODE, 0))

    if not raw_items:
        return CouponValidation(CouponEvaluation.rejected(coupon_rules.EMPTY_CART, 0), normalized_code=normalized)

    coupon = find_active_by_code(normalized)
    if coupon is None:
        return CouponValidation(CouponEvaluation.rejected(coupon_rules.NOT_FOUND, 0), normalized_code=normalized)

    product_ids = requested_product_ids(raw_items)
    if not product_ids:
        return CouponValidation(
            CouponEvaluation.rejected(coupon_rules.EMPTY_CART, 0, coupon),
            coupon=coupon, normalized_code=normalized,
        )

    if catalog is None:
        catalog = load_catalog(product_ids)
    snapshot = build_cart_snapshot(raw_items, catalog)

    evaluation = evaluate_coupon(
        coupon,
        snapshot.items,
        snapshot.subtotal,
        user_redemptions=user_redemption_count(coupon.id, user_id),
        has_user=bool(user_id),
        now=now,
    )
    return CouponValidation(evaluation, coupon=coupon, normalized_code=normalized)


# ---- admin -----------------------------------------------------------------

def _parse_optional_amount(data, key, label):
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    value = parse_amount(raw)
    if value is None or value < 0:
        raise InvalidRequest(f"{label} must be 0 or more.")
    return value


def _parse_optional_int(data, key, label):
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    value = parse_amount(raw)
    if value is None or value < 0:
        raise InvalidRequest(f"{label} must be 0 or more.")
    return int(value)


def _parse_optional_datetime(data, key, label):
    raw = data.get(key)
    if not raw:
        return None
    value = parse_iso8601(raw)
    if value is None:
        raise InvalidRequest(f"Invalid {label}.")
    return value


def _canonical_ids(values):
    out = []
    for v in values or []:
        if not v:
            continue
        parsed = parse_uuid(v)
        out.append(str(parsed) if parsed else str(v))
    return out


def normalize_coupon_payload(data: dict) -> dict:
    """Validated column values for a coupon; raises InvalidRequest on bad input."""
    code = normalize_code(data.get("code"))
    if not code:
        raise InvalidRequest("Coupon code is required (uppercase, no spaces).")

    ctype = data.get("type")
    if ctype not in COUPON_TYPES:
        raise InvalidRequest("Invalid coupon type.")

    value = parse_amount(data.get("value"))
    if value is None or value <= 0:
        raise InvalidRequest("Coupon value must be greater than 0.")
    if ctype == "percentage" and value > 100:
        raise InvalidRequest("Percentage coupons must be between 1 and 100.")

    min_order = _parse_optional_amount(data, "min_order_amount", "Minimum order amount")
    max_discount = _parse_optional_amount(data, "max_discount_amount", "Max discount")

    starts_at = _parse_optional_datetime(data, "starts_at", "start date")
    expires_at = _parse_optional_datetime(data, "expires_at", "expiry date")
    if starts_at and expires_at and starts_at > expires_at:
        raise InvalidRequest("Start date must be before expiry date.")

    usage_limit_total = _parse_optional_int(data, "usage_limit_total", "Total usage limit")
    usage_limit_per_user = _parse_optional_int(data, "usage_limit_per_user", "Per-user usage limit")

    apply_to_all = bool(data.get("apply_to_all"))
    product_ids = _canonical_ids(data.get("applicable_product_ids"))
    category_ids = _canonical_ids(data.get("applicable_category_ids"))
    if not apply_to_all:
        if product_ids and category_ids:
            raise InvalidRequest("Choose either products or categories (not both).")
        if not product_ids and not category_ids:
            raise InvalidRequest("Select at least one product or category.")

    return {
        "code": code,
        "type": ctype,
        "value": value,
        "min_order_amount": min_order,
        "max_discount_amount": max_discount if ctype == "percentage" else None,
        "starts_at": starts_at,
        "expires_at": expires_at,
        "usage_limit_total": usage_limit_total,
        "usage_limit_per_user": usage_limit_per_user,
        "is_active": bool(data.get("is_active", True)),
        "apply_to_all": apply_to_all,
        "applicable_product_ids": None if apply_to_all else (product_ids or None),
        "applicable_category_ids": None if apply_to_all else (category_ids or None),
    }


def create_coupon(data: dict) -> Coupon:
    values = normalize_coupon_payload(data)
    c = Coupon(**values)
    db.session.add(c)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvalidRequest("Coupon code already exists")
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    return c


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e


def list_coupons(active=None):
    """Non-deleted coupons, newest first; ``active`` filters on the flag."""
    try:
        q = db.session.query(Coupon).filter(Coupon.deleted_at.is_(None))
        if active is not None:
            q = q.filter(Coupon.is_active == active)
        return q.order_by(Coupon.created_at.desc(), Coupon.code.asc()).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e


def get_live_coupon(coupon_id) -> Coupon:
    cid = parse_uuid(coupon_id)
    if cid is None:
        raise NotFound("Coupon not found")
    try:
        c = db.session.query(Coupon).filter(Coupon.id == cid, Coupon.deleted_at.is_(None)).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
    if c is None:
        raise NotFound("Coupon not found")
    return c


def toggle_coupon(coupon_id) -> Coupon:
    c = get_live_coupon(coupon_id)
    c.is_active = not c.is_active
    _commit()
    return c


def soft_delete_coupon(coupon_id) -> Coupon:
    c = get_live_coupon(coupon_id)
    c.deleted_at = utcnow()
    c.is_active = False
    _commit()
    return c


def list_redemptions(coupon_id):
    cid = parse_uuid(coupon_id)
    if cid is None:
        raise NotFound("Coupon not found")
    try:
        return (
            db.session.query(CouponRedemption)
            .filter(CouponRedemption.coupon_id == cid)
            .order_by(CouponRedemption.created_at.desc(), CouponRedemption.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
