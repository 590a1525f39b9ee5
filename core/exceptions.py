"""Typed exceptions for billing failures."""

from uuid import UUID


class BillingError(Exception):
    """Base class for invoice and payment errors."""


class InvalidLineItemError(BillingError):
    """Line item has quantity below 1 or a negative unit price."""


class InvalidDiscountError(BillingError):
    """Discount value is negative, or a percentage above 100."""


class InvalidTaxRateError(BillingError):
    """Tax rate percent is negative."""


class InvalidPaymentAmountError(BillingError):
    """Payment amount is zero or negative."""


class OverpaymentRejectedError(BillingError):
    """Payment would exceed the invoice's remaining balance."""

    def __init__(self, amount, balance):
        self.amount = amount
        self.balance = balance
        super().__init__(f"Payment of {amount} exceeds remaining balance of {balance}")


class InvoiceClosedError(BillingError):
    """
    Invoice is paid or cancelled.

    Paid and cancelled invoices accept no further payments, and a settled
    invoice cannot be cancelled.
    """


class InvoiceLockedError(BillingError):
    """Invoice can no longer be edited (a payment was recorded or it was cancelled)."""


class InvoiceNotFoundError(BillingError):
    """No live invoice with the given ID."""

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} not found")


class ConcurrentModificationError(BillingError):
    """
    Invoice changed between read and write.

    The only retryable billing error: the caller should re-read the invoice
    and repeat the computation.
    """

    def __init__(self, invoice_id: UUID, expected_version: int):
        self.invoice_id = invoice_id
        self.expected_version = expected_version
        super().__init__(
            f"Invoice {invoice_id} was modified concurrently (expected version {expected_version})"
        )


class PermissionDeniedError(Exception):
    """Acting staff role lacks the capability for this operation."""

    def __init__(self, role: str, capability: str):
        self.role = role
        self.capability = capability
        super().__init__(f"Permission denied: {capability} for role {role}")
