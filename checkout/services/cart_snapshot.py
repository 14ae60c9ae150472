# checkout/services/cart_snapshot.py
"""Priced cart snapshots built from catalog truth.

Clients only ever supply product ids and quantities; prices and categories
always come from the catalog at evaluation time.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..errors import CatalogUnavailable
from ..extensions import db
from ..model import Product
from ..model.types import parse_uuid
from ..utils.money import D, Money, parse_amount, round_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    price: Money
    category_id: str | None
    name: str = ""
    image_url: str | None = None


@dataclass(frozen=True)
class CartSnapshotItem:
    product_id: str
    quantity: Money
    price: Money
    category_id: str | None

    @property
    def line_total(self) -> Money:
        return self.price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    items: tuple
    subtotal: Money


def item_product_id(raw):
    if not isinstance(raw, dict):
        return None
    pid = raw.get("product_id") or raw.get("productId")
    return str(pid).strip() if pid else None


def requested_product_ids(raw_items):
    """Distinct product ids referenced by the raw cart, first-seen order."""
    seen = []
    for raw in raw_items or []:
        pid = item_product_id(raw)
        if pid and pid not in seen:
            seen.append(pid)
    return seen


def load_catalog(product_ids):
    """Catalog entries for ``product_ids`` keyed by canonical id string; unknown ids are absent."""
    wanted = {}
    for pid in product_ids:
        parsed = parse_uuid(pid)
        if parsed is not None:
            wanted[parsed] = str(parsed)
    if not wanted:
        return {}
    try:
        rows = (
            db.session.query(Product.id, Product.price, Product.category_id, Product.name, Product.image_url)
            .filter(Product.id.in_(list(wanted)))
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("catalog lookup failed for %d products: %s", len(wanted), e)
        raise CatalogUnavailable() from e
    return {
        wanted[pid]: CatalogEntry(
            id=wanted[pid],
            price=D(price),
            category_id=str(category_id) if category_id else None,
            name=name or "",
            image_url=image_url,
        )
        for pid, price, category_id, name, image_url in rows
    }


def build_cart_snapshot(raw_items, catalog) -> CartSnapshot:
    """Keep items that match the catalog with a finite positive quantity.

    Unknown products and bad quantities are dropped, not rejected: a stale
    entry in the client's cart must not abort checkout.
    """
    items = []
    for raw in raw_items or []:
        pid = item_product_id(raw)
        if not pid:
            continue
        quantity = parse_amount(raw.get("quantity"))
        if quantity is None or quantity <= 0:
            continue
        product = catalog.get(pid)
        if product is None:
            canonical = parse_uuid(pid)
            product = catalog.get(str(canonical)) if canonical else None
        if product is None:
            continue
        items.append(CartSnapshotItem(
            product_id=product.id,
            quantity=quantity,
            price=D(product.price),
            category_id=product.category_id,
        ))

    subtotal = round_money(sum((it.line_total for it in items), D(0)))
    return CartSnapshot(items=tuple(items), subtotal=subtotal)
