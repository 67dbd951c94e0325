# Overview: Flask API routes for billing; checkout, invoices and invoice stats.

"""
Billing API routes.

Every route requires the shared auth-token header. Business failures come
back as {"success": false, "error", "code", "details"} with the error's
status; anything unexpected is logged and answered with a generic 500.
"""

from __future__ import annotations

import uuid

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth_token
from ..errors import NotFoundError, RetailError
from ..services import billing_service
from ..validation import parse_cancel_reason, parse_pagination, parse_positive_int, parse_stats_range


billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")

IDEMPOTENCY_HEADER = "idempotency-key"


def _error_response(e: RetailError, status: int | None = None):
    return jsonify(e.to_dict()), status or e.status_code


def _server_error():
    return jsonify({"success": False, "error": "Internal server error"}), 500


@billing_bp.post("/checkout")
@require_auth_token
def checkout_route():
    """
    Turn a cart into an invoice.

    Body: {"items": [{"sku", "qty"}], "paymentMethod"}
    Header: idempotency-key (optional, generated when absent)

    201 when the invoice was created, 200 when an existing invoice was
    replayed for the same key.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}

    idempotency_key = request.headers.get(IDEMPOTENCY_HEADER) or str(uuid.uuid4())

    try:
        result = billing_service.checkout(
            payload.get("items"),
            payload.get("paymentMethod"),
            idempotency_key,
        )
    except NotFoundError as e:
        # An unknown SKU in the cart is a bad request, not a missing resource
        return _error_response(e, 400)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return _server_error()

    number = result.invoice.invoice_number
    if result.is_new:
        message, status = f"Invoice #{number} created successfully", 201
    else:
        message, status = f"Invoice #{number} fetched successfully", 200

    return jsonify({"success": True, "message": message, "data": result.to_dict()}), status


@billing_bp.get("/invoices/<invoice_no>")
@require_auth_token
def get_invoice_route(invoice_no: str):
    try:
        number = parse_positive_int(invoice_no, "invoice number", maximum=None)
        invoice = billing_service.get_invoice_by_number(number)
        if invoice is None:
            raise NotFoundError(f"Invoice #{number} not found", details={"invoiceNumber": number})
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch invoice")
        return _server_error()

    return jsonify({"success": True, "data": invoice.to_dict()}), 200


@billing_bp.get("/invoices")
@require_auth_token
def list_invoices_route():
    """
    Query params:
    - page: int (optional, default 1)
    - limit: int (optional, default 50, max 100)
    """
    try:
        page, limit = parse_pagination(request.args)
        result = billing_service.list_invoices(page=page, limit=limit)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return _server_error()

    return jsonify({"success": True, "data": result}), 200


@billing_bp.post("/invoices/<invoice_no>/cancel")
@require_auth_token
def cancel_invoice_route(invoice_no: str):
    """Cancel a paid invoice and restore its stock. Body: {"reason"} (optional)."""
    try:
        number = parse_positive_int(invoice_no, "invoice number", maximum=None)
        reason = parse_cancel_reason(request.get_json(silent=True) or {})
        invoice = billing_service.cancel_invoice(number, reason)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return _server_error()

    return jsonify({
        "success": True,
        "message": f"Invoice #{invoice.invoice_number} cancelled successfully",
        "data": invoice.to_dict(),
    }), 200


@billing_bp.get("/stats")
@require_auth_token
def invoice_stats_route():
    """Query params: from_date, to_date (ISO-8601, both optional)."""
    try:
        from_date, to_date = parse_stats_range(request.args)
        stats = billing_service.get_invoice_stats(from_date, to_date)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute invoice stats")
        return _server_error()

    return jsonify({"success": True, "data": stats}), 200
