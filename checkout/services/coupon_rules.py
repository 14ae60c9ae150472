# checkout/services/coupon_rules.py
"""Coupon rule evaluation.

``evaluate_coupon`` is a pure function of its arguments: no queries, no
clock reads. Rules run in a fixed order and the first failing rule decides
the outcome:

  1) empty_cart          no items, or subtotal <= 0
  2) inactive
  3) not_started         now < starts_at
  4) expired             now > expires_at
  5) min_order           subtotal < min_order_amount
  6) usage_limit_total   used_count >= usage_limit_total
  7) signin_required /   per-user limit set: guest, or the user already
     usage_limit_user    redeemed it usage_limit_per_user times
  8) not_eligible        nothing in the cart falls inside the coupon scope
"""
from dataclasses import dataclass

from ..utils.money import D, Money, round_money

INVALID_CODE = "invalid_code"
NOT_FOUND = "not_found"
INACTIVE = "inactive"
NOT_STARTED = "not_started"
EXPIRED = "expired"
MIN_ORDER = "min_order"
USAGE_LIMIT_TOTAL = "usage_limit_total"
USAGE_LIMIT_USER = "usage_limit_user"
SIGNIN_REQUIRED = "signin_required"
NOT_ELIGIBLE = "not_eligible"
EMPTY_CART = "empty_cart"

REASON_CODES = (
    INVALID_CODE, NOT_FOUND, INACTIVE, NOT_STARTED, EXPIRED, MIN_ORDER,
    USAGE_LIMIT_TOTAL, USAGE_LIMIT_USER, SIGNIN_REQUIRED, NOT_ELIGIBLE, EMPTY_CART,
)

CURRENCY_LABEL = "L.E."

_MESSAGES = {
    INVALID_CODE: "Enter a valid coupon code.",
    NOT_FOUND: "Coupon not found.",
    INACTIVE: "This coupon is inactive.",
    NOT_STARTED: "This coupon is not active yet.",
    EXPIRED: "This coupon has expired.",
    MIN_ORDER: "Cart total does not meet the minimum for this coupon.",
    USAGE_LIMIT_TOTAL: "This coupon has reached its usage limit.",
    USAGE_LIMIT_USER: "You have already used this coupon.",
    SIGNIN_REQUIRED: "Sign in to use this coupon.",
    NOT_ELIGIBLE: "This coupon does not apply to items in your cart.",
    EMPTY_CART: "Your cart is empty.",
}


def format_currency(amount) -> str:
    return f"{round_money(amount):,.2f} {CURRENCY_LABEL}"


def reason_message(reason_code, coupon=None) -> str:
    if reason_code == MIN_ORDER and coupon is not None and coupon.min_order_amount is not None:
        return f"Spend at least {format_currency(coupon.min_order_amount)} to use this coupon."
    return _MESSAGES.get(reason_code, "Coupon is invalid.")


@dataclass(frozen=True)
class CouponEvaluation:
    valid: bool
    discount_amount: Money
    eligible_subtotal: Money
    subtotal: Money
    reason_code: str | None = None
    reason: str | None = None

    @classmethod
    def rejected(cls, reason_code, subtotal, coupon=None):
        return cls(
            valid=False,
            reason_code=reason_code,
            reason=reason_message(reason_code, coupon),
            discount_amount=D(0),
            eligible_subtotal=D(0),
            subtotal=D(subtotal),
        )

    def as_api(self):
        data = {
            "valid": self.valid,
            "discount_amount": float(self.discount_amount),
            "eligible_subtotal": float(self.eligible_subtotal),
            "subtotal": float(self.subtotal),
        }
        if not self.valid:
            data["reason_code"] = self.reason_code
            data["reason"] = self.reason
        return data


def _id_set(values):
    return {str(v) for v in (values or []) if v}


def eligible_items(coupon, items):
    """Items inside the coupon scope.

    Scope is all items when ``apply_to_all`` is set or no scope list is
    stored; otherwise the product-id set, and only failing that the
    category-id set.
    """
    product_ids = _id_set(coupon.applicable_product_ids)
    category_ids = _id_set(coupon.applicable_category_ids)
    if coupon.apply_to_all or (not product_ids and not category_ids):
        return list(items)
    if product_ids:
        return [it for it in items if str(it.product_id) in product_ids]
    return [it for it in items if it.category_id and str(it.category_id) in category_ids]


def compute_discount(coupon, eligible_subtotal: Money) -> Money:
    if coupon.type == "percentage":
        discount = eligible_subtotal * D(coupon.value) / D(100)
        if coupon.max_discount_amount is not None:
            discount = min(discount, D(coupon.max_discount_amount))
    else:
        discount = D(coupon.value)

    discount = min(discount, eligible_subtotal)
    return round_money(max(D(0), discount))


def evaluate_coupon(coupon, items, subtotal, user_redemptions: int, has_user: bool, now) -> CouponEvaluation:
    subtotal = D(subtotal)

    if not items or subtotal <= 0:
        return CouponEvaluation.rejected(EMPTY_CART, subtotal, coupon)

    if not coupon.is_active:
        return CouponEvaluation.rejected(INACTIVE, subtotal, coupon)

    if coupon.starts_at and now < coupon.starts_at:
        return CouponEvaluation.rejected(NOT_STARTED, subtotal, coupon)

    if coupon.expires_at and now > coupon.expires_at:
        return CouponEvaluation.rejected(EXPIRED, subtotal, coupon)

    if coupon.min_order_amount is not None and subtotal < D(coupon.min_order_amount):
        return CouponEvaluation.rejected(MIN_ORDER, subtotal, coupon)

    if coupon.usage_limit_total is not None and (coupon.used_count or 0) >= coupon.usage_limit_total:
        return CouponEvaluation.rejected(USAGE_LIMIT_TOTAL, subtotal, coupon)

    if coupon.usage_limit_per_user is not None:
        if not has_user:
            return CouponEvaluation.rejected(SIGNIN_REQUIRED, subtotal, coupon)
        if user_redemptions >= coupon.usage_limit_per_user:
            return CouponEvaluation.rejected(USAGE_LIMIT_USER, subtotal, coupon)

    eligible_subtotal = round_money(sum((it.price * it.quantity for it in eligible_items(coupon, items)), D(0)))
    if eligible_subtotal <= 0:
        return CouponEvaluation.rejected(NOT_ELIGIBLE, subtotal, coupon)

    return CouponEvaluation(
        valid=True,
        discount_amount=compute_discount(coupon, eligible_subtotal),
        eligible_subtotal=eligible_subtotal,
        subtotal=subtotal,
    )
