"""
Checkout orchestrator tests.

Verifies:
- A cart becomes exactly one invoice per idempotency key
- Shortfalls and invalid carts leave stock and invoices untouched
- A failure halfway through a cart rolls back every earlier line
- Cancellation restores stock once
- Listing and statistics
"""

import pytest

from retail_assist.errors import (
    AlreadyCancelledError,
    InactiveProductError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from retail_assist.models import Invoice, InvoiceItem
from retail_assist.services import billing_service, stock_service
from retail_assist.validation import MAX_DB_INT, MAX_QTY


def _quantity(sku):
    return stock_service.get_stock_by_sku(sku)["quantity"]


def _checkout(items, key="key-1", payment_method="cash"):
    return billing_service.checkout(items, payment_method, key)


class TestCheckout:
    def test_creates_paid_invoice_and_decrements_stock(self, biscuits):
        result = _checkout([{"sku": "BISPAR800G", "qty": 10}])

        assert result.is_new is True
        data = result.to_dict()
        assert data["invoiceNumber"] == 1001
        assert data["status"] == "paid"
        assert data["subtotalCents"] == 10 * 10000
        assert data["grandTotalCents"] == data["subtotalCents"]
        assert data["newInvoice"] is True
        assert data["items"] == [{
            "sku": "BISPAR800G",
            "productName": "Parle-G Gold Biscuits",
            "qty": 10,
            "unitPriceCents": 10000,
            "lineTotalCents": 100000,
        }]

        stock = stock_service.get_stock_by_sku("BISPAR800G")
        assert stock["quantity"] == 90
        assert stock["soldTotal"] == 10

    def test_replay_returns_same_invoice_without_decrement(self, biscuits, db_session):
        first = _checkout([{"sku": "BISPAR800G", "qty": 10}]).to_dict()
        second = _checkout([{"sku": "BISPAR800G", "qty": 10}])

        assert second.is_new is False
        replay = second.to_dict()
        assert replay["invoiceNumber"] == first["invoiceNumber"]
        assert replay["items"] == first["items"]
        assert replay["newInvoice"] is False
        assert _quantity("BISPAR800G") == 90
        assert db_session.query(Invoice).count() == 1

    def test_replay_ignores_a_different_cart(self, biscuits):
        first = _checkout([{"sku": "BISPAR800G", "qty": 10}]).to_dict()
        replay = _checkout([{"sku": "BISPAR800G", "qty": 1000}]).to_dict()

        assert replay["invoiceNumber"] == first["invoiceNumber"]
        assert _quantity("BISPAR800G") == 90

    def test_numbers_increase_per_invoice(self, biscuits):
        a = _checkout([{"sku": "BISPAR800G", "qty": 1}], key="a")
        b = _checkout([{"sku": "BISPAR800G", "qty": 1}], key="b")

        assert (a.invoice.invoice_number, b.invoice.invoice_number) == (1001, 1002)

    def test_lines_keep_cart_order_and_sum_to_subtotal(self, biscuits, sugar):
        result = _checkout([
            {"sku": "SUGTAT1K", "qty": 2},
            {"sku": "BISPAR800G", "qty": 3},
        ]).to_dict()

        assert [i["sku"] for i in result["items"]] == ["SUGTAT1K", "BISPAR800G"]
        assert result["subtotalCents"] == sum(i["lineTotalCents"] for i in result["items"]) == 40000

    def test_price_is_snapshotted(self, biscuits, db_session):
        result = _checkout([{"sku": "BISPAR800G", "qty": 1}])
        biscuits.price_cents = 99999
        db_session.commit()

        invoice = billing_service.get_invoice_by_number(result.invoice.invoice_number)
        assert invoice.items[0].unit_price_cents == 10000


class TestCheckoutRejections:
    def test_insufficient_stock_reports_shortfall(self, biscuits, db_session):
        _checkout([{"sku": "BISPAR800G", "qty": 10}], key="first")

        with pytest.raises(InsufficientStockError) as exc_info:
            _checkout([{"sku": "BISPAR800G", "qty": 1000}], key="second")

        assert exc_info.value.items == [{"sku": "BISPAR800G", "requested": 1000, "available": 90}]
        assert _quantity("BISPAR800G") == 90
        assert db_session.query(Invoice).count() == 1

    def test_one_short_line_rejects_whole_cart(self, biscuits, sugar, db_session):
        with pytest.raises(InsufficientStockError) as exc_info:
            _checkout([
                {"sku": "BISPAR800G", "qty": 5},
                {"sku": "SUGTAT1K", "qty": 51},
            ])

        assert [i["sku"] for i in exc_info.value.items] == ["SUGTAT1K"]
        assert _quantity("BISPAR800G") == 100
        assert _quantity("SUGTAT1K") == 50
        assert db_session.query(Invoice).count() == 0

    def test_unknown_sku_is_unavailable(self, biscuits):
        with pytest.raises(InsufficientStockError) as exc_info:
            _checkout([{"sku": "GHOST", "qty": 1}])
        assert exc_info.value.items == [{"sku": "GHOST", "requested": 1, "available": 0}]

    @pytest.mark.parametrize(
        "items,payment_method,key",
        [
            ([], "cash", "k"),
            (None, "cash", "k"),
            ([{"sku": "BISPAR800G"}], "cash", "k"),
            ([{"sku": "BISPAR800G", "qty": 0}], "cash", "k"),
            ([{"sku": "BISPAR800G", "qty": 1.5}], "cash", "k"),
            ([{"sku": "BISPAR800G", "qty": True}], "cash", "k"),
            ([{"sku": "BISPAR800G", "qty": MAX_QTY + 1}], "cash", "k"),
            ([{"sku": "BISPAR800G", "qty": 10**19}], "cash", "k"),
            ([{"sku": "", "qty": 1}], "cash", "k"),
            (["BISPAR800G"], "cash", "k"),
            ([{"sku": "BISPAR800G", "qty": 1}], "", "k"),
            ([{"sku": "BISPAR800G", "qty": 1}], None, "k"),
            ([{"sku": "BISPAR800G", "qty": 1}], "cash", ""),
        ],
    )
    def test_invalid_input_mutates_nothing(self, biscuits, db_session, items, payment_method, key):
        with pytest.raises(ValidationError):
            billing_service.checkout(items, payment_method, key)

        assert _quantity("BISPAR800G") == 100
        assert db_session.query(Invoice).count() == 0

    def test_validation_messages(self, biscuits):
        with pytest.raises(ValidationError, match="Invoice must contain at least one item"):
            _checkout([])
        with pytest.raises(ValidationError, match="Payment method is required"):
            _checkout([{"sku": "BISPAR800G", "qty": 1}], payment_method="  ")


class TestCheckoutRollback:
    def test_inactive_line_rolls_back_earlier_lines(self, biscuits, make_product, db_session):
        make_product(sku="BREBRI400G", name="Britannia Bread", quantity=10, is_active=False)

        with pytest.raises(InactiveProductError):
            _checkout([
                {"sku": "BISPAR800G", "qty": 5},
                {"sku": "BREBRI400G", "qty": 1},
            ])

        assert _quantity("BISPAR800G") == 100
        assert _quantity("BREBRI400G") == 10
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0

        # The failed attempt did not consume an invoice number
        assert _checkout([{"sku": "BISPAR800G", "qty": 1}], key="next").invoice.invoice_number == 1001

    def test_stock_drained_mid_transaction_rolls_back(self, biscuits, sugar, db_session, monkeypatch):
        real_decrease = stock_service.decrease_stock

        def decrease(sku, qty, *, commit=True):
            if sku == "SUGTAT1K":
                raise InsufficientStockError([{"sku": sku, "requested": qty, "available": 0}])
            return real_decrease(sku, qty, commit=commit)

        monkeypatch.setattr(stock_service, "decrease_stock", decrease)

        with pytest.raises(InsufficientStockError):
            _checkout([
                {"sku": "BISPAR800G", "qty": 7},
                {"sku": "SUGTAT1K", "qty": 1},
            ])

        assert _quantity("BISPAR800G") == 100
        assert db_session.query(Invoice).count() == 0

    def test_product_deleted_mid_transaction_is_not_found(self, biscuits, db_session, monkeypatch):
        real_require = billing_service._require_sellable

        def require(sku):
            if sku == "SUGTAT1K":
                raise NotFoundError(f"Product not found: {sku}")
            return real_require(sku)

        monkeypatch.setattr(billing_service, "_require_sellable", require)
        monkeypatch.setattr(
            stock_service,
            "check_stock_availability",
            lambda items: stock_service.AvailabilityResult(available=True),
        )

        with pytest.raises(NotFoundError):
            _checkout([
                {"sku": "BISPAR800G", "qty": 3},
                {"sku": "SUGTAT1K", "qty": 1},
            ])

        assert _quantity("BISPAR800G") == 100
        assert db_session.query(Invoice).count() == 0


class TestCancelInvoice:
    def test_restores_stock_and_keeps_lines(self, biscuits):
        number = _checkout([{"sku": "BISPAR800G", "qty": 10}]).invoice.invoice_number

        invoice = billing_service.cancel_invoice(number, "customer returned goods")

        assert invoice.status == "cancelled"
        assert invoice.cancel_reason == "customer returned goods"
        assert invoice.cancelled_at is not None
        assert len(invoice.items) == 1
        assert invoice.grand_total_cents == 100000

        stock = stock_service.get_stock_by_sku("BISPAR800G")
        assert stock["quantity"] == 100
        assert stock["soldTotal"] == 0

    def test_second_cancel_rejected_stock_unchanged(self, biscuits):
        number = _checkout([{"sku": "BISPAR800G", "qty": 10}]).invoice.invoice_number
        billing_service.cancel_invoice(number)

        with pytest.raises(AlreadyCancelledError):
            billing_service.cancel_invoice(number)

        assert _quantity("BISPAR800G") == 100

    def test_unknown_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            billing_service.cancel_invoice(4242)

    def test_unexpected_status_rejected(self, biscuits, db_session):
        result = _checkout([{"sku": "BISPAR800G", "qty": 1}])
        result.invoice.status = "refunded"
        db_session.commit()

        with pytest.raises(InvalidStateError):
            billing_service.cancel_invoice(result.invoice.invoice_number)
        assert _quantity("BISPAR800G") == 99

    def test_replay_after_cancel_returns_cancelled_invoice(self, biscuits):
        number = _checkout([{"sku": "BISPAR800G", "qty": 10}]).invoice.invoice_number
        billing_service.cancel_invoice(number)

        replay = _checkout([{"sku": "BISPAR800G", "qty": 10}])

        assert replay.is_new is False
        assert replay.invoice.status == "cancelled"
        assert _quantity("BISPAR800G") == 100


class TestInvoiceReads:
    def test_get_by_number(self, biscuits):
        number = _checkout([{"sku": "BISPAR800G", "qty": 2}]).invoice.invoice_number

        assert billing_service.get_invoice_by_number(number).to_dict()["items"][0]["qty"] == 2
        assert billing_service.get_invoice_by_number(9999) is None
        assert billing_service.get_invoice_by_number(MAX_DB_INT + 1) is None

    def test_cancel_out_of_range_number(self, db_session):
        with pytest.raises(NotFoundError):
            billing_service.cancel_invoice(10**20)

    def test_list_newest_first(self, biscuits):
        for key in ("a", "b", "c"):
            _checkout([{"sku": "BISPAR800G", "qty": 1}], key=key)

        result = billing_service.list_invoices(page=1, limit=2)

        assert [i["invoiceNumber"] for i in result["invoices"]] == [1003, 1002]
        assert result["pagination"] == {
            "page": 1, "limit": 2, "total": 3, "totalPages": 2, "hasNext": True, "hasPrev": False,
        }

    def test_stats_all_time(self, biscuits):
        _checkout([{"sku": "BISPAR800G", "qty": 2}], key="a")
        _checkout([{"sku": "BISPAR800G", "qty": 3}], key="b")
        cancelled = _checkout([{"sku": "BISPAR800G", "qty": 4}], key="c")
        billing_service.cancel_invoice(cancelled.invoice.invoice_number)

        stats = billing_service.get_invoice_stats()

        assert stats == {
            "totalInvoices": 2,
            "totalRevenueCents": 50000,
            "cancelledInvoices": 1,
            "period": "all_time",
        }

    def test_stats_bounded_period(self, biscuits):
        from datetime import datetime

        _checkout([{"sku": "BISPAR800G", "qty": 2}])

        stats = billing_service.get_invoice_stats(datetime(2000, 1, 1), datetime(2000, 12, 31))

        assert stats["totalInvoices"] == 0
        assert stats["totalRevenueCents"] == 0
        assert stats["period"] == {"from": "2000-01-01T00:00:00Z", "to": "2000-12-31T00:00:00Z"}

    def test_stats_lower_bound_only(self, biscuits):
        from datetime import datetime

        _checkout([{"sku": "BISPAR800G", "qty": 2}], key="a")
        cancelled = _checkout([{"sku": "BISPAR800G", "qty": 1}], key="b")
        billing_service.cancel_invoice(cancelled.invoice.invoice_number)

        stats = billing_service.get_invoice_stats(from_date=datetime(2000, 1, 1))

        assert stats == {
            "totalInvoices": 1,
            "totalRevenueCents": 20000,
            "cancelledInvoices": 1,
            "period": {"from": "2000-01-01T00:00:00Z", "to": None},
        }

        later = billing_service.get_invoice_stats(from_date=datetime(2999, 1, 1))
        assert later["totalInvoices"] == 0
        assert later["cancelledInvoices"] == 0

    def test_stats_upper_bound_only(self, biscuits):
        from datetime import datetime

        _checkout([{"sku": "BISPAR800G", "qty": 2}])

        stats = billing_service.get_invoice_stats(to_date=datetime(2999, 12, 31))

        assert stats == {
            "totalInvoices": 1,
            "totalRevenueCents": 20000,
            "cancelledInvoices": 0,
            "period": {"from": None, "to": "2999-12-31T00:00:00Z"},
        }

        earlier = billing_service.get_invoice_stats(to_date=datetime(2000, 1, 1))
        assert earlier["totalInvoices"] == 0
        assert earlier["totalRevenueCents"] == 0
