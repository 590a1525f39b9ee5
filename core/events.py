"""
Domain events for clinic billing.

Immutable event objects describing what happened to an invoice. The invoice
service publishes them after its write and audit entry have committed;
handlers react without the service knowing who is listening.

Events carry the full invoice so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class InvoiceEvent(BillingEvent):
    """Events related to invoice lifecycle."""
    invoice: Any = None  # Invoice; Any avoids importing models here


@dataclass(frozen=True)
class InvoiceCreated(InvoiceEvent):
    """A new invoice was issued in pending status."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCreated":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class PaymentRecorded(InvoiceEvent):
    """A payment was applied to an invoice."""
    payment: Any = None
    amount: Decimal = Decimal("0")

    @classmethod
    def create(cls, invoice: Any, payment: Any) -> "PaymentRecorded":
        return cls(invoice=invoice, payment=payment, amount=payment.amount)


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """The invoice balance reached zero."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceCancelled(InvoiceEvent):
    """The invoice was cancelled with a balance outstanding."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCancelled":
        return cls(invoice=invoice)
