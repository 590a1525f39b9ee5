"""
Handler that writes invoice lifecycle events to the billing activity log.

Front-desk reconciliation reads this log stream; it is separate from the
audit table, which records field-level changes.
"""

import logging
from typing import Callable

from core.events import (
    InvoiceCancelled,
    InvoiceCreated,
    InvoiceEvent,
    InvoicePaid,
    PaymentRecorded,
)

logger = logging.getLogger("billing.activity")


def handle_billing_activity(currency: str) -> Callable:
    """
    Factory that returns an InvoiceEvent handler.

    Args:
        currency: Currency code printed with amounts

    Returns:
        Handler callable that logs one line per event
    """

    def handler(event: InvoiceEvent):
        invoice = event.invoice

        if isinstance(event, InvoiceCreated):
            logger.info(
                "Invoice %s issued for patient %s: total %s %s, due %s",
                invoice.invoice_number, invoice.patient_id,
                invoice.total, currency, invoice.due_at.date().isoformat(),
            )
        elif isinstance(event, PaymentRecorded):
            logger.info(
                "Payment %s of %s %s recorded on %s (balance %s)",
                event.payment.receipt_number, event.amount, currency,
                invoice.invoice_number, invoice.balance,
            )
        elif isinstance(event, InvoicePaid):
            logger.info("Invoice %s paid in full", invoice.invoice_number)
        elif isinstance(event, InvoiceCancelled):
            logger.info(
                "Invoice %s cancelled with %s %s outstanding",
                invoice.invoice_number, invoice.balance, currency,
            )

    return handler
