from .catalog import Product, Stock, PRODUCT_TYPES, PRODUCT_BRANDS, WEIGHT_UNITS
from .billing import (
    Invoice,
    InvoiceItem,
    InvoiceSequence,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_CANCELLED,
)

__all__ = [
    'Product', 'Stock', 'PRODUCT_TYPES', 'PRODUCT_BRANDS', 'WEIGHT_UNITS',
    'Invoice', 'InvoiceItem', 'InvoiceSequence',
    'INVOICE_STATUS_PAID', 'INVOICE_STATUS_CANCELLED',
]
