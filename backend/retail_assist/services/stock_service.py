# Overview: Stock ledger operations; the only code allowed to mutate stock rows.

"""
Stock Ledger

Invariants:
- Stock.quantity never goes negative. Decrements are a single conditional
  UPDATE (quantity >= qty in the WHERE clause), so two concurrent checkouts on
  the same SKU cannot both pass and drive the row below zero.
- All mutations are relative deltas applied by the database, never
  read-modify-write in Python.
- quantity == received_total - sold_total in steady state: receipts bump
  quantity and received_total, sales move units from quantity to sold_total,
  cancellations move them back.

Mutating operations take commit=False when composed inside a larger unit of
work (checkout, cancellation); the outermost caller owns the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError

from ..errors import InactiveProductError, InsufficientStockError, InvalidQuantityError, NotFoundError
from ..extensions import db
from ..models import Product, Stock
from ..time_utils import utcnow, to_utc_z
from ..validation import MAX_DB_INT, MAX_QTY, is_valid_qty
from .concurrency import run_with_retry, unit_of_work


@dataclass
class AvailabilityResult:
    available: bool
    unavailable_items: list[dict] = field(default_factory=list)


def _require_positive_qty(qty) -> int:
    if not is_valid_qty(qty):
        raise InvalidQuantityError(
            f"Quantity must be a positive integer up to {MAX_QTY}", details={"qty": qty}
        )
    return qty


def _get_product(sku: str) -> Product:
    product = db.session.query(Product).filter_by(sku=sku).first()
    if product is None:
        raise NotFoundError(f"Product with SKU '{sku}' not found", details={"sku": sku})
    return product


def _empty_view(product: Product) -> dict:
    return {
        "sku": product.sku,
        "productName": product.name,
        "quantity": 0,
        "receivedTotal": 0,
        "soldTotal": 0,
        "lastReceivedAt": None,
        "updatedAt": to_utc_z(product.updated_at),
    }


def _paginate(query, page: int, limit: int) -> tuple[list, dict]:
    total = query.count()
    total_pages = (total + limit - 1) // limit
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def receive_stock(sku: str, qty: int, *, commit: bool = True) -> dict:
    """
    Goods receipt: add qty units of an active product to stock.

    Creates the stock record on first receipt. Raises InvalidQuantityError
    when the receipt would push quantity or received_total past MAX_DB_INT.
    """
    _require_positive_qty(qty)

    product = _get_product(sku)
    if not product.is_active:
        raise InactiveProductError(f"Product '{sku}' is not active", details={"sku": sku})
    product_id = product.id

    def _apply():
        now = utcnow()
        result = db.session.execute(
            update(Stock)
            .where(
                Stock.product_id == product_id,
                Stock.quantity <= MAX_DB_INT - qty,
                Stock.received_total <= MAX_DB_INT - qty,
            )
            .values(
                quantity=Stock.quantity + qty,
                received_total=Stock.received_total + qty,
                last_received_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            exists = db.session.query(Stock.id).filter(Stock.product_id == product_id).first()
            if exists is not None:
                raise InvalidQuantityError(
                    f"Receiving {qty} units of {sku} would exceed the maximum stock level {MAX_DB_INT}",
                    details={"sku": sku, "qty": qty},
                )
            db.session.add(Stock(
                product_id=product_id,
                quantity=qty,
                received_total=qty,
                sold_total=0,
                last_received_at=now,
            ))
            db.session.flush()

    if commit:
        def _op():
            with unit_of_work():
                _apply()

        # A concurrent first receipt may win the insert; the retry then updates its row
        run_with_retry(_op, retry_on=(IntegrityError,))
    else:
        _apply()

    stock = db.session.query(Stock).filter_by(product_id=product_id).populate_existing().one()
    current_app.logger.info("Received %s units of %s (on hand: %s)", qty, sku, stock.quantity)
    return stock.to_dict()


def get_stock_by_sku(sku: str) -> dict | None:
    """Stock view for a SKU; a product without a stock record reads as zero."""
    product = db.session.query(Product).filter_by(sku=sku).first()
    if product is None:
        return None

    stock = db.session.query(Stock).filter_by(product_id=product.id).populate_existing().first()
    if stock is None:
        return _empty_view(product)
    return stock.to_dict()


def list_stocks(page: int = 1, limit: int = 50) -> dict:
    query = (
        db.session.query(Stock)
        .join(Product)
        .order_by(Stock.updated_at.desc(), Stock.id.desc())
    )
    rows, pagination = _paginate(query, page, limit)
    return {"stocks": [s.to_dict() for s in rows], "pagination": pagination}


def get_low_stock_items(threshold: int = 5, page: int = 1, limit: int = 50) -> dict:
    """Active products at or below threshold, lowest quantity first."""
    if threshold < 0:
        raise InvalidQuantityError("Threshold must be non-negative", details={"threshold": threshold})

    query = (
        db.session.query(Stock)
        .join(Product)
        .filter(Stock.quantity <= threshold, Product.is_active.is_(True))
        .order_by(Stock.quantity.asc(), Stock.id.asc())
    )
    rows, pagination = _paginate(query, page, limit)

    items = []
    for stock in rows:
        view = stock.to_dict()
        view["alertLevel"] = "OUT_OF_STOCK" if stock.quantity == 0 else "LOW_STOCK"
        items.append(view)

    return {"lowStockItems": items, "threshold": threshold, "pagination": pagination}


def check_stock_availability(items: list[dict]) -> AvailabilityResult:
    """
    Read-only comparison of requested quantities against on-hand stock.

    Unknown SKUs and products without a stock record count as 0 available.
    Lines repeating a SKU are summed so the check matches what the
    decrements will actually need. This is an advisory fast-fail: the
    conditional decrement is what enforces availability.
    """
    requested: dict[str, int] = {}
    for item in items:
        requested[item["sku"]] = requested.get(item["sku"], 0) + item["qty"]

    on_hand = dict(
        db.session.query(Product.sku, func.coalesce(Stock.quantity, 0))
        .outerjoin(Stock, Stock.product_id == Product.id)
        .filter(Product.sku.in_(list(requested)))
        .all()
    )

    unavailable = []
    for sku, qty in requested.items():
        available = int(on_hand.get(sku, 0))
        if available < qty:
            unavailable.append({"sku": sku, "requested": qty, "available": available})

    return AvailabilityResult(available=not unavailable, unavailable_items=unavailable)


def decrease_stock(sku: str, qty: int, *, commit: bool = True) -> None:
    """
    Move qty units from on-hand to sold.

    Raises NotFoundError if the product or its stock record is missing and
    InsufficientStockError if the decrement would go negative. The
    availability guard lives in the UPDATE's WHERE clause.
    """
    _require_positive_qty(qty)
    if commit:
        with unit_of_work():
            _decrement(sku, qty)
    else:
        _decrement(sku, qty)


def _decrement(sku: str, qty: int) -> None:
    product = _get_product(sku)

    result = db.session.execute(
        update(Stock)
        .where(Stock.product_id == product.id, Stock.quantity >= qty)
        .values(
            quantity=Stock.quantity - qty,
            sold_total=Stock.sold_total + qty,
        )
        .execution_options(synchronize_session=False)
    )

    if not result.rowcount:
        available = (
            db.session.query(Stock.quantity)
            .filter(Stock.product_id == product.id)
            .scalar()
        )
        if available is None:
            raise NotFoundError(f"Stock not found for product: {sku}", details={"sku": sku})
        raise InsufficientStockError(
            [{"sku": sku, "requested": qty, "available": available}],
            message=f"Insufficient stock for {sku}. Available: {available}, Required: {qty}",
        )


def increase_stock(sku: str, qty: int, *, commit: bool = True) -> None:
    """
    Return qty units from sold to on-hand (invoice cancellation path).

    sold_total is floored at zero. A missing stock record is created, which
    should not happen in normal flow.
    """
    _require_positive_qty(qty)
    if commit:
        with unit_of_work():
            _restore(sku, qty)
    else:
        _restore(sku, qty)


def _restore(sku: str, qty: int) -> None:
    product = _get_product(sku)

    result = db.session.execute(
        update(Stock)
        .where(Stock.product_id == product.id)
        .values(
            quantity=Stock.quantity + qty,
            sold_total=case(
                (Stock.sold_total >= qty, Stock.sold_total - qty),
                else_=0,
            ),
        )
        .execution_options(synchronize_session=False)
    )

    if not result.rowcount:
        current_app.logger.warning("Restoring stock for %s without a stock record", sku)
        db.session.add(Stock(product_id=product.id, quantity=qty, received_total=0, sold_total=0))
        db.session.flush()
