# Overview: Flask API routes for stock operations; goods receipt and stock queries.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth_token
from ..errors import NotFoundError, RetailError, ValidationError
from ..services import stock_service
from ..validation import is_valid_qty, parse_pagination, parse_receive_payload, parse_threshold


stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


def _error_response(e: RetailError):
    return jsonify(e.to_dict()), e.status_code


def _server_error():
    return jsonify({"success": False, "error": "Internal server error"}), 500


@stocks_bp.get("/")
@require_auth_token
def list_stocks_route():
    try:
        page, limit = parse_pagination(request.args)
        result = stock_service.list_stocks(page=page, limit=limit)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stocks")
        return _server_error()

    return jsonify({"success": True, "data": result}), 200


@stocks_bp.post("/receive")
@require_auth_token
def receive_stock_route():
    """Goods receipt. Body: {"sku", "qty"}."""
    try:
        sku, qty = parse_receive_payload(request.get_json(silent=True) or {})
        stock = stock_service.receive_stock(sku, qty)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return _server_error()

    return jsonify({
        "success": True,
        "message": f"Successfully received {qty} units of {sku}",
        "data": stock,
    }), 200


@stocks_bp.get("/low")
@require_auth_token
def low_stock_route():
    """
    Query params:
    - threshold: int (optional, default LOW_STOCK_THRESHOLD)
    - page, limit: pagination
    """
    try:
        threshold = parse_threshold(request.args.get("threshold"))
        page, limit = parse_pagination(request.args)
        result = stock_service.get_low_stock_items(threshold=threshold, page=page, limit=limit)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list low stock items")
        return _server_error()

    return jsonify({"success": True, "data": result}), 200


@stocks_bp.post("/check/availability")
@require_auth_token
def check_availability_route():
    """Body: {"items": [{"sku", "qty"}]}. Read-only."""
    payload = request.get_json(silent=True) or {}
    items = payload.get("items") if isinstance(payload, dict) else None

    try:
        if not isinstance(items, list) or not items:
            raise ValidationError("Items array is required")
        for index, item in enumerate(items):
            if not isinstance(item, dict) or not isinstance(item.get("sku"), str) or not is_valid_qty(item.get("qty")):
                raise ValidationError("Each item must have sku and a positive qty", details={"index": index})

        result = stock_service.check_stock_availability(items)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check stock availability")
        return _server_error()

    return jsonify({
        "success": True,
        "data": {"available": result.available, "unavailableItems": result.unavailable_items},
    }), 200


@stocks_bp.get("/<sku>")
@require_auth_token
def get_stock_route(sku: str):
    try:
        stock = stock_service.get_stock_by_sku(sku)
        if stock is None:
            raise NotFoundError(f"Product with SKU '{sku}' not found", details={"sku": sku})
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch stock")
        return _server_error()

    return jsonify({"success": True, "data": stock}), 200
