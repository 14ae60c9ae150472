# ------ checkout/model/__init__.py ------

from .user import User
from .category import Category
from .product import Product
from .types import GUID
from .coupon import Coupon, CouponRedemption
from .order import Order, OrderItem
from .pending_payment import PendingPayment

__all__ = [
    "User",
    "Category",
    "Product",
    "GUID",
    "Coupon",
    "CouponRedemption",
    "Order",
    "OrderItem",
    "PendingPayment",
]
