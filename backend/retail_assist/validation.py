# Overview: Request parsing helpers shared by the API routes.

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app

from .errors import InvalidQuantityError, ValidationError
from .models import PRODUCT_BRANDS, PRODUCT_TYPES
from .time_utils import parse_iso_datetime


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999
MAX_NAME_LENGTH = 255
MAX_REASON_LENGTH = 255

# Largest value an INTEGER column holds on every supported backend
MAX_DB_INT = 2**31 - 1
# Maximum units per receipt or cart line
MAX_QTY = 1_000_000


def is_valid_qty(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, int) and 0 < value <= MAX_QTY


def parse_positive_int(value: Any, field: str, maximum: int | None = MAX_DB_INT) -> int:
    """
    Strict positive integer from a JSON value or query string.

    Rejects bools, floats, scientific notation and decimals. Values above
    maximum are rejected; pass maximum=None to let the caller decide.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdecimal():
            raise ValidationError(f"{field} must be a positive integer")
        parsed = int(stripped)
    else:
        raise ValidationError(f"{field} must be a positive integer")

    if parsed < 1:
        raise ValidationError(f"{field} must be a positive integer")
    if maximum is not None and parsed > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return parsed


def parse_pagination(args) -> tuple[int, int]:
    """
    page/limit from query args.

    Defaults: page 1, limit DEFAULT_PAGE_SIZE. limit is capped at MAX_PAGE_SIZE;
    anything below 1 or non-numeric is rejected.
    """
    page = args.get("page")
    limit = args.get("limit")

    page = 1 if page in (None, "") else parse_positive_int(page, "page")
    if limit in (None, ""):
        limit = current_app.config["DEFAULT_PAGE_SIZE"]
    else:
        limit = parse_positive_int(limit, "limit")

    return page, min(limit, current_app.config["MAX_PAGE_SIZE"])


def parse_threshold(value) -> int:
    if value in (None, ""):
        return current_app.config["LOW_STOCK_THRESHOLD"]
    if isinstance(value, str) and value.strip().isdecimal():
        threshold = int(value.strip())
        if threshold > MAX_DB_INT:
            raise ValidationError(f"threshold cannot exceed {MAX_DB_INT}")
        return threshold
    raise ValidationError("threshold must be a non-negative integer")


def parse_stats_range(args) -> tuple[datetime | None, datetime | None]:
    """
    from_date/to_date for invoice stats. Either bound may be omitted.

    A date-only to_date covers the whole day.
    """
    try:
        from_date = parse_iso_datetime(args.get("from_date"))
        to_date = parse_iso_datetime(args.get("to_date"), end_of_day=True)
    except ValueError:
        raise ValidationError("Invalid date format. Use ISO-8601, e.g. 2024-01-31")

    if from_date and to_date and from_date > to_date:
        raise ValidationError("from_date must be before to_date")
    return from_date, to_date


def parse_receive_payload(payload: dict) -> tuple[str, int]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    sku = payload.get("sku")
    if not isinstance(sku, str) or not sku.strip():
        raise ValidationError("SKU is required")

    qty = payload.get("qty")
    if not is_valid_qty(qty):
        raise InvalidQuantityError(
            f"Quantity must be a positive integer up to {MAX_QTY}", details={"qty": qty}
        )

    return sku.strip(), qty


def parse_cancel_reason(payload: dict) -> str | None:
    reason = payload.get("reason") if isinstance(payload, dict) else None
    if reason is None:
        return None
    if not isinstance(reason, str):
        raise ValidationError("reason must be a string")
    reason = reason.strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}")
    return reason or None


def _require_price(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("priceCents must be an integer")
    if value < 0:
        raise ValidationError("priceCents must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"priceCents cannot exceed {MAX_PRICE_CENTS}")
    return value


def _require_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name cannot be blank")
    if len(value.strip()) > MAX_NAME_LENGTH:
        raise ValidationError(f"name exceeds max length {MAX_NAME_LENGTH}")
    return value.strip()


def _require_bool(value, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean")
    return value


def validate_product_create(payload: dict) -> dict:
    """
    Normalize a product creation body.

    Returns {name, product_type, brand, weight_string, price_cents, is_active,
    initial_stock}; weight_string is parsed by the catalog service.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = ("name", "productType", "brand", "weightString", "priceCents")
    missing = [f for f in required if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    product_type = payload["productType"]
    if product_type not in PRODUCT_TYPES:
        raise ValidationError(f"Invalid productType: {product_type}", details={"allowed": list(PRODUCT_TYPES)})

    brand = payload["brand"]
    if brand not in PRODUCT_BRANDS:
        raise ValidationError(f"Invalid brand: {brand}", details={"allowed": list(PRODUCT_BRANDS)})

    initial_stock = payload.get("initialStock", 0)
    if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or not 0 <= initial_stock <= MAX_QTY:
        raise InvalidQuantityError(f"initialStock must be an integer between 0 and {MAX_QTY}")

    return {
        "name": _require_name(payload["name"]),
        "product_type": product_type,
        "brand": brand,
        "weight_string": payload["weightString"],
        "price_cents": _require_price(payload["priceCents"]),
        "is_active": _require_bool(payload.get("active", True), "active"),
        "initial_stock": initial_stock,
    }


# Fields a PATCH may touch; SKU-forming attributes are fixed at creation
PRODUCT_UPDATABLE_FIELDS = {"name": "name", "priceCents": "price_cents", "active": "is_active"}


def validate_product_update(payload: dict) -> dict:
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("Invalid JSON payload")

    for key in payload:
        if key not in PRODUCT_UPDATABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    patch = {}
    if "name" in payload:
        patch["name"] = _require_name(payload["name"])
    if "priceCents" in payload:
        patch["price_cents"] = _require_price(payload["priceCents"])
    if "active" in payload:
        patch["is_active"] = _require_bool(payload["active"], "active")
    return patch
