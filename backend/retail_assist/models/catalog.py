from __future__ import annotations

from ..extensions import db
from ..sku import format_weight
from ..time_utils import to_utc_z, utcnow


PRODUCT_TYPES = (
    "BISCUIT", "SUGAR", "SALT", "NOODLES", "BREAD",
    "OIL", "RICE", "FLOUR", "SPICE", "DAIRY",
)

PRODUCT_BRANDS = (
    "PARLE", "TATA", "MAGGI", "BRITANNIA", "FORTUNE",
    "AASHIRVAAD", "AMUL", "EVEREST", "PATANJALI", "GENERIC",
)

WEIGHT_UNITS = ("GRAM", "KILOGRAM", "LITER", "MILLILITER", "PIECE")


class Product(db.Model):
    """
    Product master data.

    SKU is the business key, generated from type/brand/weight at creation
    and never changed afterwards. Billing reads products but never mutates them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_sku", "is_active", "sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    product_type = db.Column(db.String(16), nullable=False)
    brand = db.Column(db.String(16), nullable=False)
    weight = db.Column(db.Float, nullable=False)
    weight_unit = db.Column(db.String(16), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    stock = db.relationship(
        "Stock",
        back_populates="product",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "productType": self.product_type,
            "brand": self.brand,
            "weight": self.weight,
            "weightUnit": self.weight_unit,
            "weightDisplay": format_weight(self.weight, self.weight_unit),
            "priceCents": self.price_cents,
            "active": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "stock": (
                {"quantity": self.stock.quantity, "soldTotal": self.stock.sold_total}
                if self.stock is not None
                else None
            ),
        }


class Stock(db.Model):
    """
    On-hand stock record, one per product.

    INVARIANTS:
    - quantity >= 0 at all times (enforced by CHECK constraint and by the
      conditional decrement in stock_service)
    - quantity == received_total - sold_total in steady state

    Only stock_service mutates these rows, always with relative deltas applied
    by a single UPDATE statement.
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.CheckConstraint("received_total >= 0", name="received_total_non_negative"),
        db.CheckConstraint("sold_total >= 0", name="sold_total_non_negative"),
        db.Index("ix_stocks_quantity", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    quantity = db.Column(db.Integer, nullable=False, default=0)
    received_total = db.Column(db.Integer, nullable=False, default=0)
    sold_total = db.Column(db.Integer, nullable=False, default=0)

    last_received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", back_populates="stock")

    def __repr__(self) -> str:
        return f"<Stock product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "sku": self.product.sku,
            "productName": self.product.name,
            "quantity": self.quantity,
            "receivedTotal": self.received_total,
            "soldTotal": self.sold_total,
            "lastReceivedAt": to_utc_z(self.last_received_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
