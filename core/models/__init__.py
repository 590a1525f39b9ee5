"""Core domain models."""

from core.models.line_item import LineItem
from core.models.invoice import (
    DiscountKind,
    DiscountSpec,
    Invoice,
    InvoiceCreate,
    InvoiceTotals,
    InvoiceUpdate,
    Payment,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
    RevenueSummary,
)

__all__ = [
    # LineItem
    "LineItem",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoiceTotals",
    "DiscountKind", "DiscountSpec",
    # Payments
    "Payment", "PaymentCreate", "PaymentMethod", "PaymentStatus",
    # Reporting
    "RevenueSummary",
]
