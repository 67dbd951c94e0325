from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_CANCELLED = "cancelled"


def _uuid() -> str:
    return str(uuid.uuid4())


class Invoice(db.Model):
    """
    Billing document created by checkout.

    WHY TWO IDENTIFIERS:
    - id: opaque UUID, never shown to customers
    - invoice_number: human-facing sequential number (1001, 1002, ...)

    INVARIANTS:
    - idempotency_key is unique: at most one invoice per key, ever
    - invoice_number is unique: concurrent allocations fail instead of duplicating
    - status moves paid -> cancelled only; cancelled is terminal
    - subtotal_cents == sum(items.line_total_cents); grand_total_cents == subtotal_cents
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_created", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    invoice_number = db.Column(db.Integer, nullable=False, unique=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(64), nullable=False)
    idempotency_key = db.Column(db.String(255), nullable=False, unique=True)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_PAID)

    # Cancellation audit trail
    cancel_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceItem.position",
    )

    def __repr__(self) -> str:
        return f"<Invoice number={self.invoice_number} status={self.status!r}>"

    def to_dict(self, *, new_invoice: bool = False) -> dict:
        return {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "subtotalCents": self.subtotal_cents,
            "grandTotalCents": self.grand_total_cents,
            "paymentMethod": self.payment_method,
            "idempotencyKey": self.idempotency_key,
            "newInvoice": new_invoice,
            "status": self.status,
            "cancelReason": self.cancel_reason,
            "cancelledAt": to_utc_z(self.cancelled_at),
            "createdAt": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class InvoiceItem(db.Model):
    """
    One cart line on an invoice.

    sku, product_name and unit_price_cents are snapshots taken at sale time so
    the invoice survives later product renames and price changes. Lines are
    kept when the invoice is cancelled.
    """
    __tablename__ = "invoice_items"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    invoice_id = db.Column(
        db.String(36),
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Cart order, so a replayed invoice lists lines exactly as first sold
    position = db.Column(db.Integer, nullable=False, default=0)

    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("Invoice", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "productName": self.product_name,
            "qty": self.qty,
            "unitPriceCents": self.unit_price_cents,
            "lineTotalCents": self.line_total_cents,
        }


class InvoiceSequence(db.Model):
    """
    Atomic invoice number counter.

    WHY: max(invoice_number) + 1 computed in the service layer races under
    concurrent checkouts. The counter row is bumped with a single UPDATE in the
    same transaction as the invoice insert, so a rolled-back checkout also
    rolls back its number.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
