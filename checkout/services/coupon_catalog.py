# checkout/services/coupon_catalog.py
import re

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StoreUnavailable
from ..extensions import db
from ..model import Coupon, CouponRedemption

_WHITESPACE = re.compile(r"\s")


def normalize_code(code):
    """Trimmed, uppercased code, or None when empty or containing whitespace."""
    if not code or not isinstance(code, str):
        return None
    trimmed = code.strip()
    if not trimmed or _WHITESPACE.search(trimmed):
        return None
    return trimmed.upper()


def find_active_by_code(normalized_code):
    # no caching: a coupon can be deactivated at any moment
    try:
        return (
            Coupon.query
            .filter(Coupon.code == normalized_code, Coupon.deleted_at.is_(None))
            .first()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e


def user_redemption_count(coupon_id, user_id) -> int:
    if not user_id:
        return 0
    try:
        return (
            db.session.query(db.func.count(CouponRedemption.id))
            .filter(CouponRedemption.coupon_id == coupon_id, CouponRedemption.user_id == user_id)
            .scalar()
        ) or 0
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable() from e
