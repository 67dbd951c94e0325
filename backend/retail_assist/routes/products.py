# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/retail_assist/routes/products.py
"""
Product management routes.

SKUs are generated on create and never change, so PATCH only accepts
name, priceCents and active. DELETE deactivates the product.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth_token
from ..errors import RetailError
from ..services import products_service
from ..validation import validate_product_create, validate_product_update

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _error_response(e: RetailError):
    return jsonify(e.to_dict()), e.status_code


def _server_error():
    return jsonify({"success": False, "error": "Internal server error"}), 500


@products_bp.get("/")
@require_auth_token
def list_products_route():
    """
    Query params:
    - type: product type filter (optional)
    - brand: brand filter (optional)
    """
    try:
        result = products_service.list_products(
            product_type=request.args.get("type") or None,
            brand=request.args.get("brand") or None,
        )
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return _server_error()

    return jsonify({"success": True, "data": result}), 200


@products_bp.get("/active")
@require_auth_token
def list_active_products_route():
    try:
        result = products_service.list_products(active_only=True)
    except Exception:
        current_app.logger.exception("Failed to list active products")
        return _server_error()

    return jsonify({"success": True, "data": result}), 200


@products_bp.get("/search/<query>")
@require_auth_token
def search_products_route(query: str):
    try:
        result = products_service.search_products(query)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search products")
        return _server_error()

    return jsonify({"success": True, "data": result}), 200


@products_bp.get("/<sku>")
@require_auth_token
def get_product_route(sku: str):
    try:
        product = products_service.get_product(sku)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch product")
        return _server_error()

    return jsonify({"success": True, "data": product.to_dict()}), 200


@products_bp.post("/")
@require_auth_token
def create_product_route():
    """
    Create a new product.

    Body: {"name", "productType", "brand", "weightString", "priceCents",
           "active"?, "initialStock"?}
    """
    try:
        data = validate_product_create(request.get_json(silent=True) or {})
        created = products_service.create_product(data=data)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return _server_error()

    return jsonify({"success": True, "data": created}), 201


@products_bp.patch("/<sku>")
@require_auth_token
def update_product_route(sku: str):
    try:
        patch = validate_product_update(request.get_json(silent=True) or {})
        updated = products_service.update_product(sku=sku, patch=patch)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return _server_error()

    return jsonify({"success": True, "data": updated}), 200


@products_bp.delete("/<sku>")
@require_auth_token
def delete_product_route(sku: str):
    try:
        products_service.delete_product(sku=sku)
    except RetailError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return _server_error()

    return jsonify({"success": True, "message": f"Product {sku} deactivated"}), 200
