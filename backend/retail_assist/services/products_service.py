# backend/retail_assist/services/products_service.py
"""
Products Service

SKUs are generated from type/brand/weight at creation and never change.
A product and its stock record are created in one transaction, so a product
is never visible without a stock record (quantity may be 0).
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Stock, PRODUCT_BRANDS, PRODUCT_TYPES
from ..sku import generate_unique_sku, parse_weight
from .concurrency import run_with_retry, unit_of_work

PRODUCT_MUTABLE_FIELDS = {"name", "price_cents", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _product_query():
    return db.session.query(Product).options(selectinload(Product.stock))


def _is_sku_free(sku: str) -> bool:
    return db.session.query(Product.id).filter_by(sku=sku).first() is None


def list_products(
    *,
    active_only: bool = False,
    product_type: str | None = None,
    brand: str | None = None,
) -> dict:
    """
    Catalog listing ordered by SKU, optionally narrowed by type or brand.

    Returns:
        Dict with 'items' and 'count'.
    """
    query = _product_query()
    if active_only:
        query = query.filter(Product.is_active.is_(True))

    if product_type is not None:
        if product_type not in PRODUCT_TYPES:
            raise ValidationError(f"Invalid productType: {product_type}")
        query = query.filter(Product.product_type == product_type)

    if brand is not None:
        if brand not in PRODUCT_BRANDS:
            raise ValidationError(f"Invalid brand: {brand}")
        query = query.filter(Product.brand == brand)

    products = query.order_by(Product.sku.asc()).all()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


def search_products(term: str) -> dict:
    """Case-insensitive substring match on name or SKU."""
    term = (term or "").strip()
    if not term:
        raise ValidationError("Search query is required")

    pattern = f"%{term}%"
    products = (
        _product_query()
        .filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        .order_by(Product.sku.asc())
        .all()
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


def get_product(sku: str) -> Product:
    product = _product_query().filter(Product.sku == sku).first()
    if product is None:
        raise NotFoundError(f"Product with SKU '{sku}' not found", details={"sku": sku})
    return product


def create_product(*, data: dict) -> dict:
    """
    Create a product with a generated SKU and its stock record.

    Args:
        data: validated fields (name, product_type, brand, weight_string,
              price_cents, is_active, initial_stock)

    Raises:
        ValidationError: unparseable weight
        ConflictError: all SKU suffixes for this type/brand/weight are taken
    """
    weight, unit = parse_weight(data["weight_string"])
    if weight <= 0:
        raise ValidationError("Weight must be greater than zero")

    def _op() -> Product:
        with unit_of_work():
            sku = generate_unique_sku(data["product_type"], data["brand"], weight, unit, _is_sku_free)

            p = Product(
                sku=sku,
                product_type=data["product_type"],
                brand=data["brand"],
                weight=weight,
                weight_unit=unit,
            )
            apply_product_patch(p, data)
            db.session.add(p)
            db.session.flush()  # ensure p.id exists before the stock row

            initial = data.get("initial_stock", 0)
            p.stock = Stock(quantity=initial, received_total=initial, sold_total=0)
            db.session.flush()
        return p

    # A concurrent create can take the same SKU between check and insert
    p = run_with_retry(_op, retry_on=(IntegrityError,))
    current_app.logger.info("Created product %s (%s)", p.sku, p.name)
    return get_product(p.sku).to_dict()


def update_product(*, sku: str, patch: dict) -> dict:
    """
    Update name, price or active flag. SKU and the attributes it is built
    from stay fixed.
    """
    p = get_product(sku)
    apply_product_patch(p, patch)
    db.session.commit()

    current_app.logger.info("Updated product %s: %s", sku, ", ".join(sorted(patch.keys())))
    return get_product(sku).to_dict()


def delete_product(*, sku: str) -> None:
    """
    Soft-delete a product.

    Invoice lines reference products, so rows are deactivated rather than
    removed; inactive products cannot be sold or received.
    """
    p = get_product(sku)
    if p.is_active:
        p.is_active = False
        db.session.commit()
        current_app.logger.info("Deactivated product %s", sku)
