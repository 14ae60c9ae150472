"""
Coupon rule evaluation: precedence, scope, discount math.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from hypothesis import given, settings, strategies as st

from checkout.services import coupon_rules
from checkout.services.cart_snapshot import CartSnapshotItem
from checkout.services.coupon_rules import evaluate_coupon

NOW = datetime(2026, 10, 19, 12, 0, 0)


def coupon(**overrides):
    values = dict(
        code="SAVE20",
        type="percentage",
        value=Decimal("20"),
        is_active=True,
        starts_at=None,
        expires_at=None,
        min_order_amount=None,
        max_discount_amount=None,
        usage_limit_total=None,
        usage_limit_per_user=None,
        used_count=0,
        apply_to_all=True,
        applicable_product_ids=None,
        applicable_category_ids=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def item(product_id, price, quantity=1, category_id=None):
    return CartSnapshotItem(
        product_id=product_id,
        quantity=Decimal(quantity),
        price=Decimal(str(price)),
        category_id=category_id,
    )


def run(c, items, subtotal=None, user_redemptions=0, has_user=False, now=NOW):
    if subtotal is None:
        subtotal = sum((i.price * i.quantity for i in items), Decimal("0"))
    return evaluate_coupon(c, items, subtotal, user_redemptions, has_user, now)


class TestRulePrecedence:

    def test_empty_cart(self):
        result = run(coupon(), [], subtotal=Decimal("0"))
        assert not result.valid
        assert result.reason_code == coupon_rules.EMPTY_CART
        assert result.discount_amount == 0

    def test_zero_subtotal_is_empty_cart(self):
        result = run(coupon(), [item("A", 0)])
        assert result.reason_code == coupon_rules.EMPTY_CART

    def test_empty_cart_beats_inactive(self):
        result = run(coupon(is_active=False), [], subtotal=Decimal("0"))
        assert result.reason_code == coupon_rules.EMPTY_CART

    def test_inactive(self):
        result = run(coupon(is_active=False), [item("A", 100)])
        assert result.reason_code == coupon_rules.INACTIVE

    def test_not_started(self):
        result = run(coupon(starts_at=NOW + timedelta(minutes=1)), [item("A", 100)])
        assert result.reason_code == coupon_rules.NOT_STARTED

    def test_starts_exactly_now_is_started(self):
        result = run(coupon(starts_at=NOW), [item("A", 100)])
        assert result.valid

    def test_expired(self):
        result = run(coupon(expires_at=NOW - timedelta(seconds=1)), [item("A", 100)])
        assert result.reason_code == coupon_rules.EXPIRED

    def test_expired_beats_min_order(self):
        c = coupon(expires_at=NOW - timedelta(days=1), min_order_amount=Decimal("1000"))
        result = run(c, [item("A", 100)])
        assert result.reason_code == coupon_rules.EXPIRED

    def test_min_order(self):
        result = run(coupon(min_order_amount=Decimal("500")), [item("A", 100)])
        assert result.reason_code == coupon_rules.MIN_ORDER
        assert "500.00" in result.reason

    def test_min_order_is_inclusive(self):
        result = run(coupon(min_order_amount=Decimal("100")), [item("A", 100)])
        assert result.valid

    def test_usage_limit_total(self):
        result = run(coupon(usage_limit_total=5, used_count=5), [item("A", 100)])
        assert result.reason_code == coupon_rules.USAGE_LIMIT_TOTAL

    def test_per_user_limit_requires_signin(self):
        result = run(coupon(usage_limit_per_user=1), [item("A", 100)], has_user=False)
        assert result.reason_code == coupon_rules.SIGNIN_REQUIRED

    def test_per_user_limit_reached(self):
        result = run(coupon(usage_limit_per_user=1), [item("A", 100)], user_redemptions=1, has_user=True)
        assert result.reason_code == coupon_rules.USAGE_LIMIT_USER

    def test_per_user_limit_not_reached(self):
        result = run(coupon(usage_limit_per_user=2), [item("A", 100)], user_redemptions=1, has_user=True)
        assert result.valid

    def test_every_rejection_has_message_and_zero_discount(self):
        result = run(coupon(is_active=False), [item("A", 100)])
        assert result.reason == "This coupon is inactive."
        assert result.discount_amount == 0
        assert result.eligible_subtotal == 0


class TestScope:

    def test_product_scope_without_matching_item(self):
        c = coupon(apply_to_all=False, applicable_product_ids=["A"])
        result = run(c, [item("B", 100)])
        assert not result.valid
        assert result.reason_code == coupon_rules.NOT_ELIGIBLE
        assert result.discount_amount == 0

    def test_product_scope_discounts_only_matching_items(self):
        c = coupon(apply_to_all=False, applicable_product_ids=["A"], value=Decimal("10"))
        result = run(c, [item("A", 100), item("B", 300)])
        assert result.valid
        assert result.eligible_subtotal == Decimal("100.00")
        assert result.subtotal == Decimal("400")
        assert result.discount_amount == Decimal("10.00")

    def test_category_scope(self):
        c = coupon(apply_to_all=False, applicable_category_ids=["shoes"], type="fixed", value=Decimal("30"))
        result = run(c, [item("A", 100, category_id="shoes"), item("C", 50, category_id="socks")])
        assert result.eligible_subtotal == Decimal("100.00")
        assert result.discount_amount == Decimal("30.00")

    def test_category_scope_ignores_uncategorized_items(self):
        c = coupon(apply_to_all=False, applicable_category_ids=["shoes"])
        result = run(c, [item("A", 100, category_id=None)])
        assert result.reason_code == coupon_rules.NOT_ELIGIBLE

    def test_no_scope_lists_means_all_items(self):
        c = coupon(apply_to_all=False)
        result = run(c, [item("A", 100)])
        assert result.valid
        assert result.eligible_subtotal == Decimal("100.00")

    def test_product_scope_wins_over_category_scope(self):
        c = coupon(apply_to_all=False, applicable_product_ids=["B"], applicable_category_ids=["shoes"])
        result = run(c, [item("A", 100, category_id="shoes"), item("B", 40, category_id="socks")])
        assert result.eligible_subtotal == Decimal("40.00")


class TestDiscount:

    def test_percentage_cap(self):
        c = coupon(value=Decimal("20"), max_discount_amount=Decimal("50"))
        result = run(c, [item("A", 200, quantity=2)])
        assert result.eligible_subtotal == Decimal("400.00")
        assert result.discount_amount == Decimal("50.00")

    def test_percentage_uncapped(self):
        result = run(coupon(value=Decimal("20")), [item("A", 200, quantity=2)])
        assert result.discount_amount == Decimal("80.00")

    def test_fixed_never_exceeds_eligible_subtotal(self):
        c = coupon(type="fixed", value=Decimal("500"))
        result = run(c, [item("A", 120)])
        assert result.discount_amount == Decimal("120.00")

    def test_discount_rounds_half_up(self):
        # 15% of 33.30 = 4.995
        result = run(coupon(value=Decimal("15")), [item("A", "33.30")])
        assert result.discount_amount == Decimal("5.00")

    def test_eligible_subtotal_is_rounded(self):
        result = run(coupon(value=Decimal("10")), [item("A", "0.333", quantity=3)])
        assert result.eligible_subtotal == Decimal("1.00")
        assert result.discount_amount == Decimal("0.10")

    def test_as_api_for_valid_result_has_no_reason(self):
        data = run(coupon(), [item("A", 100)]).as_api()
        assert data == {"valid": True, "discount_amount": 20.0, "eligible_subtotal": 100.0, "subtotal": 100.0}


def test_every_reason_code_has_its_own_message():
    messages = {code: coupon_rules.reason_message(code) for code in coupon_rules.REASON_CODES}
    assert len(set(messages.values())) == len(coupon_rules.REASON_CODES)
    assert coupon_rules.format_currency(Decimal("1234.5")) == "1,234.50 L.E."


prices = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("999.99"), places=2)
cart_items = st.lists(
    st.tuples(st.sampled_from(["A", "B", "C"]), prices, st.integers(min_value=1, max_value=5)),
    min_size=1,
    max_size=6,
)


@given(
    lines=cart_items,
    ctype=st.sampled_from(["percentage", "fixed"]),
    value=st.decimals(min_value=Decimal("1"), max_value=Decimal("100"), places=2),
    cap=st.one_of(st.none(), prices),
    scope=st.one_of(st.none(), st.sets(st.sampled_from(["A", "B", "C"]), min_size=1)),
)
@settings(max_examples=200, deadline=None)
def test_discount_is_bounded(lines, ctype, value, cap, scope):
    items = [item(pid, price, qty) for pid, price, qty in lines]
    subtotal = sum((i.price * i.quantity for i in items), Decimal("0")).quantize(Decimal("0.01"))
    c = coupon(
        type=ctype,
        value=value,
        max_discount_amount=cap,
        apply_to_all=scope is None,
        applicable_product_ids=sorted(scope) if scope else None,
    )

    result = evaluate_coupon(c, items, subtotal, 0, False, NOW)

    if result.valid:
        assert Decimal("0") <= result.discount_amount <= result.eligible_subtotal <= result.subtotal
        assert result.discount_amount == result.discount_amount.quantize(Decimal("0.01"))
    else:
        assert result.reason_code == coupon_rules.NOT_ELIGIBLE
        assert result.discount_amount == 0
