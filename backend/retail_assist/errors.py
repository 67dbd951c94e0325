# Overview: Domain error taxonomy shared by services and routes.

"""
Every business failure raised by the service layer derives from RetailError.

Routes translate a RetailError into a JSON body of the form
{"success": false, "error": <message>, "code": <code>, "details": {...}}
using the class-level status_code. Anything else is an unexpected store or
programming failure and is answered with a generic 500.
"""

from __future__ import annotations


class RetailError(Exception):
    """Base class for business rule failures."""
    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(RetailError):
    """400-level input problem. Raised before any mutation is attempted."""
    code = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is missing, non-integer, or not strictly positive."""
    code = "INVALID_QUANTITY"


class NotFoundError(RetailError):
    """Unknown SKU, product, stock record, or invoice."""
    status_code = 404
    code = "NOT_FOUND"


class InactiveProductError(RetailError):
    code = "INACTIVE_PRODUCT"


class InsufficientStockError(RetailError):
    """
    One or more lines exceed on-hand quantity.

    details["items"] is a list of {"sku", "requested", "available"}.
    """
    code = "INSUFFICIENT_STOCK"

    def __init__(self, items: list[dict], message: str | None = None):
        if message is None:
            message = "Insufficient stock for items: " + ", ".join(
                f"{i['sku']} (need: {i['requested']}, available: {i['available']})"
                for i in items
            )
        super().__init__(message, details={"items": items})
        self.items = items


class AlreadyCancelledError(RetailError):
    code = "ALREADY_CANCELLED"


class InvalidStateError(RetailError):
    """Operation not allowed for the document's current status."""
    code = "INVALID_STATE"


class ConflictError(RetailError):
    """409-level business rule conflict (e.g., SKU space exhausted)."""
    status_code = 409
    code = "CONFLICT"
