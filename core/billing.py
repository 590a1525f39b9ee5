"""
Invoice calculator and payment ledger.

Pure functions only: nothing here touches the database, the clock (callers
pass `now`) or shared state. The invoice service reads an invoice, calls these,
and writes the result back under a version guard.

Policy:
- Tax is charged on the pre-discount subtotal.
- A fixed-amount discount is clamped to the subtotal.
- Prices and payments are whole minor units (at most 2 decimal places), so the
  subtotal and every balance are exact.
- The total is computed from the unrounded tax and discount and rounded
  half-up once; the tax and discount figures are rounded separately for display.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from core.exceptions import (
    InvalidDiscountError,
    InvalidLineItemError,
    InvalidPaymentAmountError,
    InvalidTaxRateError,
    InvoiceClosedError,
    OverpaymentRejectedError,
)
from core.models.invoice import (
    DiscountKind,
    DiscountSpec,
    Invoice,
    InvoiceTotals,
    PaymentMethod,
    PaymentStatus,
)
from core.models.line_item import LineItem

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_money(value: Decimal) -> Decimal:
    """Round to minor units (2 decimals), half-up."""
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def has_sub_minor_units(value: Decimal) -> bool:
    """True if value carries fractions of a minor unit, e.g. 0.333."""
    return value != round_money(value)


def validate_line_item(item: LineItem) -> None:
    """Raise InvalidLineItemError if quantity < 1, unit_price < 0 or finer than 0.01."""
    if item.quantity < 1:
        raise InvalidLineItemError(
            f"Line item '{item.name}' has quantity {item.quantity}; quantity must be at least 1"
        )
    if item.unit_price < 0:
        raise InvalidLineItemError(
            f"Line item '{item.name}' has negative unit price {item.unit_price}"
        )
    if has_sub_minor_units(item.unit_price):
        raise InvalidLineItemError(
            f"Line item '{item.name}' unit price {item.unit_price} has more than 2 decimal places"
        )


def validate_discount(discount: DiscountSpec) -> None:
    """Raise InvalidDiscountError for negative values or percentages above 100."""
    if discount.value < 0:
        raise InvalidDiscountError(f"Discount cannot be negative (got {discount.value})")
    if discount.kind == DiscountKind.PERCENTAGE and discount.value > HUNDRED:
        raise InvalidDiscountError(
            f"Percentage discount must be between 0 and 100 (got {discount.value})"
        )


def compute_invoice_totals(
    line_items: Iterable[LineItem],
    tax_rate_percent: Decimal,
    discount: DiscountSpec,
) -> InvoiceTotals:
    """
    Derive subtotal, discount, tax and total for an invoice.

    Args:
        line_items: Billed services
        tax_rate_percent: Tax rate, e.g. Decimal("10") for 10%
        discount: Fixed amount or percentage discount

    Returns:
        InvoiceTotals in minor units; subtotal is exact, total is rounded once

    Raises:
        InvalidLineItemError: quantity < 1, unit_price < 0 or more than 2 decimals
        InvalidDiscountError: negative value or percentage > 100
        InvalidTaxRateError: negative tax rate
    """
    items = list(line_items)
    for item in items:
        validate_line_item(item)
    validate_discount(discount)
    if tax_rate_percent < 0:
        raise InvalidTaxRateError(f"Tax rate cannot be negative (got {tax_rate_percent})")

    subtotal = sum((item.total_price for item in items), ZERO)

    if discount.kind == DiscountKind.PERCENTAGE:
        discount_amount = subtotal * discount.value / HUNDRED
    else:
        discount_amount = min(discount.value, subtotal)

    tax_amount = subtotal * tax_rate_percent / HUNDRED
    total = max(ZERO, subtotal + tax_amount - discount_amount)

    # Unit prices are whole minor units, so quantizing the subtotal only
    # normalizes its exponent.
    return InvoiceTotals(
        subtotal=subtotal.quantize(MINOR_UNIT),
        discount_amount=round_money(discount_amount),
        tax_amount=round_money(tax_amount),
        total=round_money(total),
    )


def balance_due(invoice: Invoice) -> Decimal:
    """total − amount_paid, floored at zero."""
    return max(ZERO, invoice.totals.total - invoice.amount_paid)


def derive_status(invoice: Invoice, now: datetime) -> PaymentStatus:
    """
    Payment status of an invoice at `now`.

    Cancellation overrides everything. A partially paid invoice past its due
    date is still reported overdue. Safe to call any number of times.
    """
    if invoice.is_cancelled:
        return PaymentStatus.CANCELLED

    total = invoice.totals.total
    if invoice.amount_paid >= total:
        return PaymentStatus.PAID

    past_due = now > invoice.due_at
    if invoice.amount_paid > 0:
        return PaymentStatus.OVERDUE if past_due else PaymentStatus.PARTIALLY_PAID
    if past_due:
        return PaymentStatus.OVERDUE
    return PaymentStatus.PENDING


@dataclass(frozen=True)
class RecordedPayment:
    """Outcome of applying a payment to an invoice."""

    invoice: Invoice
    amount: Decimal
    status: PaymentStatus


def record_payment(
    invoice: Invoice,
    amount: Decimal,
    now: datetime,
    method: PaymentMethod | None = None,
) -> RecordedPayment:
    """
    Apply a payment to an invoice.

    The input invoice is not modified; the returned invoice carries the new
    amount_paid, payment date and method.

    Raises:
        InvalidPaymentAmountError: amount <= 0 or more than 2 decimal places
        InvoiceClosedError: invoice already paid or cancelled
        OverpaymentRejectedError: amount exceeds the remaining balance
    """
    if amount <= 0:
        raise InvalidPaymentAmountError(f"Payment amount must be positive (got {amount})")
    if has_sub_minor_units(amount):
        raise InvalidPaymentAmountError(
            f"Payment amount {amount} has more than 2 decimal places"
        )

    current = derive_status(invoice, now)
    if current in (PaymentStatus.PAID, PaymentStatus.CANCELLED):
        raise InvoiceClosedError(
            f"Invoice {invoice.invoice_number} is {current.value} and accepts no further payments"
        )

    balance = balance_due(invoice)
    if amount > balance:
        raise OverpaymentRejectedError(amount, balance)

    updated = invoice.model_copy(update={
        "amount_paid": invoice.amount_paid + amount,
        "payment_date": now,
        "payment_method": method if method is not None else invoice.payment_method,
    })
    return RecordedPayment(invoice=updated, amount=amount, status=derive_status(updated, now))


def cancel_invoice(invoice: Invoice, now: datetime) -> Invoice:
    """
    Mark an invoice cancelled.

    Only invoices with an outstanding balance can be cancelled, and
    cancellation is one-way.

    Raises:
        InvoiceClosedError: already cancelled, or nothing left to pay
    """
    if invoice.is_cancelled:
        raise InvoiceClosedError(f"Invoice {invoice.invoice_number} is already cancelled")
    if balance_due(invoice) <= 0:
        raise InvoiceClosedError(
            f"Invoice {invoice.invoice_number} is paid and cannot be cancelled"
        )
    return invoice.model_copy(update={"cancelled_at": now})
