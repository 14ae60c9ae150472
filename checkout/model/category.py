# --- checkout/model/category.py ---
from ..extensions import db
from .types import GUID, new_uuid

class Category(db.Model):
    __tablename__ = "category"
    id = db.Column(GUID(), primary_key=True, default=new_uuid)
    name = db.Column(db.String(120), nullable=False, unique=True)
    products = db.relationship(
        "Product",
        backref="category",
        lazy=True
        )
