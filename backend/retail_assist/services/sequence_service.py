# Overview: Invoice number allocation inside the caller's transaction.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, InvoiceSequence


INVOICE_SEQUENCE = "invoice"


def _seed_value() -> int:
    highest = db.session.query(func.max(Invoice.invoice_number)).scalar()
    if highest is None:
        return current_app.config["INVOICE_START_NUMBER"]
    return highest + 1


def next_invoice_number() -> int:
    """
    Allocate the next invoice number: max(existing) + 1, or the configured
    start number (1001) when no invoices exist.

    Must run inside the same unit of work as the invoice insert and never
    commits. The counter row is created lazily on first use; a concurrent
    creator loses on the unique name and falls back to the increment.
    """
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.name == INVOICE_SEQUENCE)
        .values(next_number=InvoiceSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        start = _seed_value()
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(name=INVOICE_SEQUENCE, next_number=start + 1))
            return start
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(name=INVOICE_SEQUENCE)
        .scalar()
    )
    return current - 1
