"""
Invoice service for clinic billing.

Reads invoice state from PostgreSQL, applies the pure calculator and ledger
from core.billing, and writes the result back. Every write to an existing
invoice is a compare-and-set on its `version` column, so two receptionists
recording payments at once can never lose an update: the slower write finds
the version moved, and the whole read-compute-write cycle is retried.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, TypeVar
from uuid import UUID, uuid4

from psycopg2 import errors as pg_errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.audit import AuditAction, AuditLogger, compute_changes
from core.billing import cancel_invoice, compute_invoice_totals, derive_status, record_payment
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import InvoiceCancelled, InvoiceCreated, InvoicePaid, PaymentRecorded
from core.exceptions import ConcurrentModificationError, InvoiceLockedError, InvoiceNotFoundError
from core.models import (
    DiscountSpec,
    Invoice,
    InvoiceCreate,
    InvoiceTotals,
    InvoiceUpdate,
    LineItem,
    Payment,
    PaymentCreate,
    PaymentStatus,
    RevenueSummary,
)
from utils.staff_context import get_current_staff_id
from utils.timezone import days_from, month_bounds, now_utc, to_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _line_items_json(line_items: Iterable[LineItem]) -> Json:
    return Json([item.model_dump(mode="json") for item in line_items])


def _discount_json(discount: DiscountSpec) -> Json:
    return Json(discount.model_dump(mode="json"))


class InvoiceService:
    """Service for invoice and payment operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        config: BillingConfig | None = None
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or BillingConfig()

    # -------------------------------------------------------------------------
    # Numbering
    # -------------------------------------------------------------------------

    def _generate_invoice_number(self, now: datetime) -> str:
        """
        Generate the next invoice number for today.

        Format: INV-YYYYMMDD-XXXX where XXXX is a per-day sequence number.
        """
        prefix = f"{self.config.invoice_number_prefix}-{now.strftime('%Y%m%d')}-"

        result = self.postgres.execute_single(
            """
            SELECT invoice_number FROM invoices
            WHERE invoice_number LIKE %s
            ORDER BY invoice_number DESC
            LIMIT 1
            """,
            (f"{prefix}%",)
        )

        if result is None:
            sequence = 1
        else:
            try:
                sequence = int(result["invoice_number"].split("-")[-1]) + 1
            except (ValueError, IndexError):
                sequence = 1

        return f"{prefix}{sequence:04d}"

    def _receipt_number(self, invoice: Invoice, sequence: int) -> str:
        """Format: RCP-<invoice number>-NN, one sequence per invoice."""
        return f"{self.config.receipt_number_prefix}-{invoice.invoice_number}-{sequence:02d}"

    # -------------------------------------------------------------------------
    # Concurrency helpers
    # -------------------------------------------------------------------------

    def _with_conflict_retry(self, invoice_id: UUID, operation: Callable[[], T]) -> T:
        """
        Run a read-compute-write operation, retrying when it loses a version race.

        Raises:
            ConcurrentModificationError: Still conflicting after the configured retries
        """
        attempts = self.config.payment_conflict_retries + 1
        for attempt in range(1, attempts):
            try:
                return operation()
            except ConcurrentModificationError:
                logger.warning(
                    "Invoice %s changed during write (attempt %s/%s), retrying",
                    invoice_id, attempt, attempts,
                )

        try:
            return operation()
        except ConcurrentModificationError:
            logger.error("Invoice %s still conflicting after %s attempts", invoice_id, attempts)
            raise

    def _compare_and_set(self, cur, current: Invoice, fields: dict[str, Any], now: datetime) -> dict:
        """
        Update an invoice only if its version is unchanged since it was read.

        Must run inside postgres.transaction(). Column names come from this
        module, never from callers' input.

        Raises:
            ConcurrentModificationError: Version moved, or invoice deleted meanwhile
        """
        assignments = ", ".join(f"{column} = %s" for column in fields)
        cur.execute(
            f"""
            UPDATE invoices
            SET {assignments}, version = version + 1, updated_at = %s
            WHERE id = %s AND version = %s AND deleted_at IS NULL
            RETURNING *
            """,
            self.postgres.convert_params(
                (*fields.values(), now, current.id, current.version)
            )
        )
        row = cur.fetchone()
        if row is None:
            raise ConcurrentModificationError(current.id, current.version)
        return dict(row)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s AND deleted_at IS NULL",
            (invoice_id,)
        )

        if row is None:
            return None

        return Invoice.model_validate(row)

    def _require(self, invoice_id: UUID) -> Invoice:
        invoice = self.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def list_invoices(
        self,
        patient_id: UUID | None = None,
        status: PaymentStatus | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        now: datetime | None = None
    ) -> list[Invoice]:
        """
        List invoices, newest first.

        Status is derived at `now` (default: current time), so an invoice
        shows up as overdue the moment its due date passes without any write.
        With a status filter, rows are read in pages of
        `status_scan_page_size` until `limit` matches are found.

        Args:
            patient_id: Only this patient's invoices
            status: Only invoices currently in this status
            start: Created at or after
            end: Created at or before
            limit: Maximum results
            now: Reference time for status derivation
        """
        now = now or now_utc()
        conditions = ["deleted_at IS NULL"]
        params: list[Any] = []

        if patient_id is not None:
            conditions.append("patient_id = %s")
            params.append(patient_id)
        if start is not None:
            conditions.append("created_at >= %s")
            params.append(start)
        if end is not None:
            conditions.append("created_at <= %s")
            params.append(end)

        # Narrow in SQL where the stored columns decide; the exact status is
        # re-derived below because totals are never stored.
        if status == PaymentStatus.CANCELLED:
            conditions.append("cancelled_at IS NOT NULL")
        elif status is not None:
            conditions.append("cancelled_at IS NULL")
            if status == PaymentStatus.PENDING:
                conditions.append("amount_paid = 0 AND due_at >= %s")
                params.append(now)
            elif status == PaymentStatus.PARTIALLY_PAID:
                conditions.append("amount_paid > 0 AND due_at >= %s")
                params.append(now)
            elif status == PaymentStatus.OVERDUE:
                conditions.append("due_at < %s")
                params.append(now)

        query = (
            f"SELECT * FROM invoices WHERE {' AND '.join(conditions)} "
            "ORDER BY created_at DESC, id LIMIT %s OFFSET %s"
        )

        if status is None:
            rows = self.postgres.execute(query, (*params, limit, 0))
            return [Invoice.model_validate(row) for row in rows]

        page_size = self.config.status_scan_page_size
        matches: list[Invoice] = []
        offset = 0
        while len(matches) < limit:
            rows = self.postgres.execute(query, (*params, page_size, offset))
            for row in rows:
                invoice = Invoice.model_validate(row)
                if derive_status(invoice, now) == status:
                    matches.append(invoice)
            if len(rows) < page_size:
                break
            offset += page_size

        return matches[:limit]

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        """Payments (receipts) recorded against an invoice, oldest first."""
        rows = self.postgres.execute(
            "SELECT * FROM payments WHERE invoice_id = %s ORDER BY recorded_at ASC",
            (invoice_id,)
        )
        return [Payment.model_validate(row) for row in rows]

    def get_history(self, invoice_id: UUID) -> list[dict[str, Any]]:
        """Audit entries for an invoice, newest first."""
        self._require(invoice_id)
        return self.audit.get_entity_history("invoice", invoice_id)

    def revenue_summary(self, now: datetime | None = None) -> RevenueSummary:
        """
        Collected revenue: total of amounts paid on live invoices, overall and
        for invoices issued in the current calendar month (UTC).
        """
        now = now or now_utc()
        month_start, month_end = month_bounds(now)

        row = self.postgres.execute_single(
            """
            SELECT
                COALESCE(SUM(amount_paid), 0) AS total_revenue,
                COALESCE(SUM(amount_paid) FILTER (
                    WHERE created_at >= %s AND created_at < %s
                ), 0) AS monthly_revenue
            FROM invoices
            WHERE deleted_at IS NULL
            """,
            (month_start, month_end)
        )

        return RevenueSummary(
            currency=self.config.currency,
            total_revenue=Decimal(row["total_revenue"]),
            monthly_revenue=Decimal(row["monthly_revenue"]),
            month_start=month_start,
        )

    def quote(
        self,
        line_items: list[LineItem],
        tax_rate_percent: Decimal,
        discount: DiscountSpec
    ) -> InvoiceTotals:
        """Compute totals without persisting anything (invoice form preview)."""
        return compute_invoice_totals(line_items, tax_rate_percent, discount)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice in pending status.

        Args:
            data: Patient, line items, tax rate, discount and optional due date

        Returns:
            Created invoice

        Raises:
            InvalidLineItemError, InvalidDiscountError, InvalidTaxRateError: Bad inputs
            ValueError: Naive due date
        """
        totals = compute_invoice_totals(data.line_items, data.tax_rate_percent, data.discount)

        staff_id = get_current_staff_id()
        now = now_utc()
        due_at = to_utc(data.due_at) if data.due_at else days_from(now, self.config.default_due_days)

        attempts = self.config.payment_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            invoice_number = self._generate_invoice_number(now)
            try:
                row = self._insert_invoice(data, invoice_number, due_at, staff_id, now)
                break
            except pg_errors.UniqueViolation:
                if attempt == attempts:
                    raise
                logger.warning("Invoice number %s taken concurrently, retrying", invoice_number)

        invoice = Invoice.model_validate(row)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={
                "created": {
                    "invoice_number": invoice.invoice_number,
                    "patient_id": str(invoice.patient_id),
                    "line_items": [item.model_dump(mode="json") for item in invoice.line_items],
                    "tax_rate_percent": str(invoice.tax_rate_percent),
                    "discount": invoice.discount.model_dump(mode="json"),
                    "total": str(totals.total),
                    "due_at": invoice.due_at.isoformat(),
                }
            },
            staff_id=staff_id
        )

        self.event_bus.publish(InvoiceCreated.create(invoice=invoice))

        return invoice

    def _insert_invoice(
        self,
        data: InvoiceCreate,
        invoice_number: str,
        due_at: datetime,
        staff_id: UUID,
        now: datetime
    ) -> dict:
        return self.postgres.execute_returning(
            """
            INSERT INTO invoices (
                id, invoice_number, patient_id, appointment_id,
                line_items, tax_rate_percent, discount,
                amount_paid, due_at, notes, version,
                created_by, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s
            )
            RETURNING *
            """,
            (
                uuid4(), invoice_number, data.patient_id, data.appointment_id,
                _line_items_json(data.line_items), data.tax_rate_percent, _discount_json(data.discount),
                Decimal("0"), due_at, data.notes, 1,
                staff_id, now, now
            )
        )[0]

    def update(self, invoice_id: UUID, data: InvoiceUpdate) -> Invoice:
        """
        Edit an invoice's inputs while it is still editable.

        Raises:
            InvoiceNotFoundError: No such invoice
            InvoiceLockedError: A payment was recorded or the invoice was cancelled
            ConcurrentModificationError: Invoice changed since it was read
        """
        current = self._require(invoice_id)
        if not current.is_editable:
            raise InvoiceLockedError(
                f"Invoice {current.invoice_number} can no longer be edited"
            )

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return current

        line_items = data.line_items if data.line_items is not None else current.line_items
        tax_rate = data.tax_rate_percent if data.tax_rate_percent is not None else current.tax_rate_percent
        discount = data.discount if data.discount is not None else current.discount
        compute_invoice_totals(line_items, tax_rate, discount)

        fields: dict[str, Any] = {}
        if data.line_items is not None:
            fields["line_items"] = _line_items_json(data.line_items)
        if data.tax_rate_percent is not None:
            fields["tax_rate_percent"] = data.tax_rate_percent
        if data.discount is not None:
            fields["discount"] = _discount_json(data.discount)
        if data.due_at is not None:
            fields["due_at"] = to_utc(data.due_at)
        if "notes" in changes:
            fields["notes"] = data.notes
        if not fields:
            return current

        now = now_utc()
        with self.postgres.transaction() as cur:
            row = self._compare_and_set(cur, current, fields, now)
            updated = Invoice.model_validate(row)
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes=compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json")
                ),
                cursor=cur
            )

        return updated

    def record_payment(self, invoice_id: UUID, data: PaymentCreate) -> tuple[Invoice, Payment]:
        """
        Record a payment on an invoice.

        Args:
            invoice_id: Invoice UUID
            data: Amount and payment method

        Returns:
            (updated invoice, payment receipt)

        Raises:
            InvoiceNotFoundError: No such invoice
            InvalidPaymentAmountError: amount <= 0
            InvoiceClosedError: Invoice already paid or cancelled
            OverpaymentRejectedError: amount exceeds balance
            ConcurrentModificationError: Lost the version race on every retry
        """
        invoice, payment = self._with_conflict_retry(
            invoice_id, lambda: self._record_payment_once(invoice_id, data)
        )

        self.event_bus.publish(PaymentRecorded.create(invoice=invoice, payment=payment))
        if invoice.balance == 0:
            self.event_bus.publish(InvoicePaid.create(invoice=invoice))

        return invoice, payment

    def _record_payment_once(self, invoice_id: UUID, data: PaymentCreate) -> tuple[Invoice, Payment]:
        current = self._require(invoice_id)
        now = now_utc()
        outcome = record_payment(current, data.amount, now, data.method)
        staff_id = get_current_staff_id()

        with self.postgres.transaction() as cur:
            row = self._compare_and_set(cur, current, {
                "amount_paid": outcome.invoice.amount_paid,
                "payment_date": now,
                "payment_method": data.method.value,
            }, now)
            updated = Invoice.model_validate(row)

            cur.execute(
                "SELECT COUNT(*) AS recorded FROM payments WHERE invoice_id = %s",
                self.postgres.convert_params((invoice_id,))
            )
            sequence = cur.fetchone()["recorded"] + 1

            cur.execute(
                """
                INSERT INTO payments (id, invoice_id, receipt_number, amount, method, recorded_by, recorded_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                self.postgres.convert_params((
                    uuid4(), invoice_id, self._receipt_number(updated, sequence),
                    data.amount, data.method.value, staff_id, now
                ))
            )
            payment = Payment.model_validate(dict(cur.fetchone()))

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes={
                    "amount_paid": {"old": str(current.amount_paid), "new": str(updated.amount_paid)},
                    "status": {
                        "old": derive_status(current, now).value,
                        "new": derive_status(updated, now).value,
                    },
                    "payment_recorded": {
                        "receipt_number": payment.receipt_number,
                        "amount": str(payment.amount),
                        "method": payment.method.value,
                    },
                },
                staff_id=staff_id,
                cursor=cur
            )

        return updated, payment

    def cancel(self, invoice_id: UUID) -> Invoice:
        """
        Cancel an invoice with an outstanding balance.

        Raises:
            InvoiceNotFoundError: No such invoice
            InvoiceClosedError: Already cancelled, or fully paid
        """
        invoice = self._with_conflict_retry(invoice_id, lambda: self._cancel_once(invoice_id))
        self.event_bus.publish(InvoiceCancelled.create(invoice=invoice))
        return invoice

    def _cancel_once(self, invoice_id: UUID) -> Invoice:
        current = self._require(invoice_id)
        now = now_utc()
        cancelled = cancel_invoice(current, now)

        with self.postgres.transaction() as cur:
            row = self._compare_and_set(cur, current, {"cancelled_at": cancelled.cancelled_at}, now)
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes={
                    "status": {
                        "old": derive_status(current, now).value,
                        "new": PaymentStatus.CANCELLED.value,
                    },
                    "cancelled_at": {"old": None, "new": now.isoformat()},
                },
                cursor=cur
            )

        return Invoice.model_validate(row)

    def delete(self, invoice_id: UUID) -> bool:
        """
        Soft delete an invoice.

        Returns:
            True if deleted, False if not found.
        """
        current = self.get_by_id(invoice_id)
        if current is None:
            return False

        now = now_utc()
        self.postgres.execute(
            "UPDATE invoices SET deleted_at = %s, updated_at = %s WHERE id = %s",
            (now, now, invoice_id)
        )

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True
