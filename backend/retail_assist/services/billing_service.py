# Overview: Checkout orchestrator; turns a cart into a durable invoice exactly once.

"""
Billing Service

WHY IDEMPOTENCY: clients retry checkouts after network timeouts. The
idempotency key is the only thing standing between a retry and a second
charge, so it is checked before any stock is touched and is backed by a
unique constraint on invoices.idempotency_key.

CHECKOUT FLOW:
1. Validate the cart (no mutation on failure)
2. Existing invoice for the key -> replay it, stock untouched
3. Advisory availability check -> InsufficientStockError with every shortfall
4. One unit of work: invoice number, invoice row, lines, stock decrements
5. Return the committed invoice

The advisory check in step 3 is a fast-fail only. Enforcement is the
conditional decrement inside step 4, which rejects instead of going negative
if stock moved in between. A unique-constraint hit on the idempotency key
during step 4 means another request just created the invoice; it is replayed
rather than reported as an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..errors import (
    AlreadyCancelledError,
    InactiveProductError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Invoice,
    InvoiceItem,
    Product,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_CANCELLED,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import MAX_DB_INT, MAX_QTY, is_valid_qty
from . import stock_service
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .sequence_service import next_invoice_number


MAX_PAYMENT_METHOD_LENGTH = 64
MAX_IDEMPOTENCY_KEY_LENGTH = 255


class InvoiceNumberConflict(Exception):
    """Invoice number collided with a concurrent insert; safe to retry."""


@dataclass
class CheckoutResult:
    invoice: Invoice
    is_new: bool

    def to_dict(self) -> dict:
        return self.invoice.to_dict(new_invoice=self.is_new)


def validate_cart(items, payment_method, idempotency_key) -> list[dict]:
    """Normalize and validate checkout input. Returns [{sku, qty}, ...]."""
    if not isinstance(items, list) or not items:
        raise ValidationError("Invoice must contain at least one item")

    cart = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object with sku and qty", details={"index": index})

        sku = item.get("sku")
        if not isinstance(sku, str) or not sku.strip():
            raise ValidationError("Each item must have sku (string)", details={"index": index})

        qty = item.get("qty")
        if not is_valid_qty(qty):
            raise ValidationError(
                f"Each item must have qty (positive integer up to {MAX_QTY})", details={"index": index}
            )

        cart.append({"sku": sku.strip(), "qty": qty})

    if not isinstance(payment_method, str) or not payment_method.strip():
        raise ValidationError("Payment method is required")
    if len(payment_method.strip()) > MAX_PAYMENT_METHOD_LENGTH:
        raise ValidationError(f"Payment method must be at most {MAX_PAYMENT_METHOD_LENGTH} characters")

    if not isinstance(idempotency_key, str) or not idempotency_key.strip():
        raise ValidationError("Idempotency key is required")
    if len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(f"Idempotency key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters")

    return cart


def _invoice_query():
    return db.session.query(Invoice).options(selectinload(Invoice.items))


def find_invoice_by_key(idempotency_key: str) -> Invoice | None:
    """Idempotency lookup: the committed invoice for a key, with its lines."""
    return _invoice_query().filter(Invoice.idempotency_key == idempotency_key).populate_existing().first()


def get_invoice_by_number(invoice_number: int) -> Invoice | None:
    # Numbers beyond the column range cannot exist
    if invoice_number > MAX_DB_INT:
        return None
    return _invoice_query().filter(Invoice.invoice_number == invoice_number).populate_existing().first()


def _require_sellable(sku: str) -> Product:
    product = db.session.query(Product).filter_by(sku=sku).first()
    if product is None:
        raise NotFoundError(f"Product not found: {sku}", details={"sku": sku})
    if not product.is_active:
        raise InactiveProductError(f"Product is not active: {sku}", details={"sku": sku})
    return product


def _create_invoice_locked(cart: list[dict], payment_method: str, idempotency_key: str) -> CheckoutResult:
    """Body of the checkout unit of work. Never commits."""
    existing = find_invoice_by_key(idempotency_key)
    if existing is not None:
        return CheckoutResult(existing, False)

    invoice = Invoice(
        invoice_number=next_invoice_number(),
        subtotal_cents=0,
        grand_total_cents=0,
        payment_method=payment_method,
        idempotency_key=idempotency_key,
        status=INVOICE_STATUS_PAID,
    )
    db.session.add(invoice)
    db.session.flush()

    subtotal = 0
    for position, line in enumerate(cart):
        product = _require_sellable(line["sku"])

        line_total = product.price_cents * line["qty"]
        subtotal += line_total

        invoice.items.append(InvoiceItem(
            product_id=product.id,
            position=position,
            sku=product.sku,
            product_name=product.name,
            qty=line["qty"],
            unit_price_cents=product.price_cents,
            line_total_cents=line_total,
        ))

        stock_service.decrease_stock(product.sku, line["qty"], commit=False)

    # No tax or discount layer: grand total is the subtotal
    invoice.subtotal_cents = subtotal
    invoice.grand_total_cents = subtotal
    db.session.flush()

    return CheckoutResult(invoice, True)


def checkout(items, payment_method, idempotency_key) -> CheckoutResult:
    """
    Create an invoice for a cart, or replay the invoice already created under
    the same idempotency key.

    Raises ValidationError, InsufficientStockError, NotFoundError or
    InactiveProductError; on any failure nothing is written.
    """
    cart = validate_cart(items, payment_method, idempotency_key)
    payment_method = payment_method.strip()

    existing = find_invoice_by_key(idempotency_key)
    if existing is not None:
        current_app.logger.info(
            "Replaying invoice #%s for idempotency key %s", existing.invoice_number, idempotency_key
        )
        return CheckoutResult(existing, False)

    availability = stock_service.check_stock_availability(cart)
    if not availability.available:
        current_app.logger.warning(
            "Checkout rejected, insufficient stock: %s", availability.unavailable_items
        )
        raise InsufficientStockError(availability.unavailable_items)

    def _op() -> CheckoutResult:
        try:
            with unit_of_work():
                result = _create_invoice_locked(cart, payment_method, idempotency_key)
        except IntegrityError:
            # unit_of_work already rolled back; find out which constraint fired
            winner = find_invoice_by_key(idempotency_key)
            if winner is not None:
                return CheckoutResult(winner, False)
            raise InvoiceNumberConflict()
        return result

    result = run_with_retry(_op, retry_on=(InvoiceNumberConflict,))

    if result.is_new:
        current_app.logger.info(
            "Created invoice #%s (%s lines, total %s cents, %s)",
            result.invoice.invoice_number,
            len(result.invoice.items),
            result.invoice.grand_total_cents,
            payment_method,
        )
    else:
        current_app.logger.info(
            "Replaying invoice #%s for idempotency key %s", result.invoice.invoice_number, idempotency_key
        )
    return result


def list_invoices(page: int = 1, limit: int = 50) -> dict:
    """Newest first, with a pagination block."""
    total = db.session.query(func.count(Invoice.id)).scalar() or 0
    total_pages = (total + limit - 1) // limit

    invoices = (
        _invoice_query()
        .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "invoices": [invoice.to_dict() for invoice in invoices],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }


def cancel_invoice(invoice_number: int, reason: str | None = None) -> Invoice:
    """
    Cancel a paid invoice and put its units back on the shelf.

    Lines and amounts are kept as history. Only paid invoices can be cancelled;
    cancelled is terminal.
    """
    if invoice_number > MAX_DB_INT:
        raise NotFoundError(f"Invoice #{invoice_number} not found", details={"invoiceNumber": invoice_number})

    def _op() -> Invoice:
        with unit_of_work():
            invoice = lock_for_update(_invoice_query().filter(Invoice.invoice_number == invoice_number)).first()
            if invoice is None:
                raise NotFoundError(f"Invoice #{invoice_number} not found", details={"invoiceNumber": invoice_number})

            if invoice.status == INVOICE_STATUS_CANCELLED:
                raise AlreadyCancelledError(f"Invoice #{invoice_number} is already cancelled")

            if invoice.status != INVOICE_STATUS_PAID:
                raise InvalidStateError(
                    f"Can only cancel paid invoices. Current status: {invoice.status}",
                    details={"status": invoice.status},
                )

            for item in invoice.items:
                stock_service.increase_stock(item.sku, item.qty, commit=False)

            invoice.status = INVOICE_STATUS_CANCELLED
            invoice.cancel_reason = reason
            invoice.cancelled_at = utcnow()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Cancelled invoice #%s (reason: %s)", invoice_number, reason or "-")
    return invoice


def get_invoice_stats(from_date: datetime | None = None, to_date: datetime | None = None) -> dict:
    """
    Paid count and revenue plus cancelled count, optionally bounded by
    created_at (inclusive). No bounds means all time.
    """
    filters = []
    if from_date is not None:
        filters.append(Invoice.created_at >= from_date)
    if to_date is not None:
        filters.append(Invoice.created_at <= to_date)

    paid_count, revenue = (
        db.session.query(func.count(Invoice.id), func.coalesce(func.sum(Invoice.grand_total_cents), 0))
        .filter(Invoice.status == INVOICE_STATUS_PAID, *filters)
        .one()
    )
    cancelled_count = (
        db.session.query(func.count(Invoice.id))
        .filter(Invoice.status == INVOICE_STATUS_CANCELLED, *filters)
        .scalar()
    )

    if from_date is None and to_date is None:
        period = "all_time"
    else:
        period = {"from": to_utc_z(from_date), "to": to_utc_z(to_date)}

    return {
        "totalInvoices": int(paid_count),
        "totalRevenueCents": int(revenue),
        "cancelledInvoices": int(cancelled_count or 0),
        "period": period,
    }
