# checkout/model/product.py
from ..extensions import db
from sqlalchemy.sql import func
from .types import GUID, new_uuid

class Product(db.Model):
    """Catalog collaborator: the authoritative price of a product."""
    __tablename__ = "product"
    id = db.Column(GUID(), primary_key=True, default=new_uuid)
    name = db.Column(db.String(255), nullable=False, index=True)
    image_url = db.Column(db.String(1024))

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.Boolean, default=True)

    category_id = db.Column(
        GUID(),
        db.ForeignKey("category.id"),
        nullable=True
    )

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())
