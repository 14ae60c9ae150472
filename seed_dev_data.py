from decimal import Decimal

from checkout import create_app
from checkout.extensions import db
from checkout.model import Category, Coupon, Product

# Create an app instance
app = create_app()

sample_categories = ["Shoes", "Socks", "Bags"]

# (name, price, category)
sample_products = [
    ("Runner", "200.00", "Shoes"),
    ("Trail", "100.00", "Shoes"),
    ("Court Classic", "149.99", "Shoes"),
    ("Crew Sock", "50.00", "Socks"),
    ("Ankle Sock 3-pack", "75.50", "Socks"),
    ("Tote", "120.00", "Bags"),
]

sample_coupons = [
    {"code": "SAVE20", "type": "percentage", "value": Decimal("20"), "max_discount_amount": Decimal("50")},
    {"code": "WELCOME50", "type": "fixed", "value": Decimal("50"), "min_order_amount": Decimal("300"),
     "usage_limit_per_user": 1},
    {"code": "SHOES10", "type": "percentage", "value": Decimal("10"), "apply_to_all": False},
]

with app.app_context():
    categories = {}
    for name in sample_categories:
        category = Category.query.filter_by(name=name).first() or Category(name=name)
        db.session.add(category)
        categories[name] = category
    db.session.flush()

    for name, price, category in sample_products:
        if Product.query.filter_by(name=name).first():
            continue
        db.session.add(Product(name=name, price=Decimal(price), category_id=categories[category].id))

    for data in sample_coupons:
        if Coupon.query.filter(Coupon.code == data["code"], Coupon.deleted_at.is_(None)).first():
            continue
        data = dict(data)
        if data.get("apply_to_all") is False:
            data["applicable_category_ids"] = [str(categories["Shoes"].id)]
        db.session.add(Coupon(**data))

    db.session.commit()

print("Sample categories, products and coupons are in place.")
