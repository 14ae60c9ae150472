# --- checkout/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func
from .types import GUID, new_uuid
from ..utils.api import isoformat

COUPON_TYPES = ("percentage", "fixed")

class Coupon(db.Model):
    __tablename__ = "coupons"
    __table_args__ = (
        # codes are unique among live rows only; soft-deleted codes may be reused
        db.Index(
            "uq_coupons_live_code", "code", unique=True,
            sqlite_where=db.text("deleted_at IS NULL"),
            postgresql_where=db.text("deleted_at IS NULL"),
        ),
    )

    id = db.Column(GUID(), primary_key=True, default=new_uuid)
    code = db.Column(db.String(64), nullable=False, index=True)   # normalized: uppercase, no spaces

    # "percentage" or "fixed"
    type = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Optional constraints
    min_order_amount = db.Column(db.Numeric(12, 2), nullable=True)
    max_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)   # percentage only
    starts_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    usage_limit_total = db.Column(db.Integer, nullable=True)
    usage_limit_per_user = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, nullable=False, default=0)

    # Scope: all items, or an explicit product set, or an explicit category set
    apply_to_all = db.Column(db.Boolean, nullable=False, default=True)
    applicable_product_ids = db.Column(db.JSON, nullable=True)
    applicable_category_ids = db.Column(db.JSON, nullable=True)

    deleted_at = db.Column(db.DateTime, nullable=True, index=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": str(self.id),
            "code": self.code,
            "type": self.type,
            "value": float(self.value or 0),
            "min_order_amount": float(self.min_order_amount) if self.min_order_amount is not None else None,
            "max_discount_amount": float(self.max_discount_amount) if self.max_discount_amount is not None else None,
            "starts_at": isoformat(self.starts_at),
            "expires_at": isoformat(self.expires_at),
            "usage_limit_total": self.usage_limit_total,
            "usage_limit_per_user": self.usage_limit_per_user,
            "used_count": self.used_count or 0,
            "is_active": bool(self.is_active),
            "apply_to_all": bool(self.apply_to_all),
            "applicable_product_ids": self.applicable_product_ids,
            "applicable_category_ids": self.applicable_category_ids,
            "deleted_at": isoformat(self.deleted_at),
        }

class CouponRedemption(db.Model):
    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        db.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_redemptions_coupon_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(GUID(), db.ForeignKey("coupons.id"), index=True, nullable=False)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "coupon_id": str(self.coupon_id),
            "order_id": self.order_id,
            "user_id": self.user_id,
            "discount_amount": float(self.discount_amount or 0),
            "created_at": isoformat(self.created_at),
        }
