"""Invoice domain models.

Only the inputs of an invoice are stored: line items, tax rate, discount and
the running amount paid. Subtotal, total, balance and payment status are
always derived from those inputs (see core.billing) so they cannot drift.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.line_item import LineItem


class DiscountKind(str, Enum):
    """How a discount value is interpreted."""

    AMOUNT = "amount"
    PERCENTAGE = "percentage"


class DiscountSpec(BaseModel):
    """Discount applied to an invoice subtotal. Defaults to no discount."""

    kind: DiscountKind = DiscountKind.AMOUNT
    value: Decimal = Decimal("0")

    model_config = {"frozen": True}

    @classmethod
    def none(cls) -> "DiscountSpec":
        return cls()

    @classmethod
    def amount(cls, value: Decimal | int | str) -> "DiscountSpec":
        return cls(kind=DiscountKind.AMOUNT, value=Decimal(value))

    @classmethod
    def percentage(cls, value: Decimal | int | str) -> "DiscountSpec":
        return cls(kind=DiscountKind.PERCENTAGE, value=Decimal(value))


class PaymentStatus(str, Enum):
    """Payment status as seen at a point in time. Derived, never stored."""

    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How a payment was tendered at the front desk."""

    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    INSURANCE = "insurance"
    OTHER = "other"


class InvoiceTotals(BaseModel):
    """Derived invoice amounts, rounded to minor units."""

    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal

    model_config = {"frozen": True}


class InvoiceCreate(BaseModel):
    """Data required to create an invoice for a patient."""

    patient_id: UUID
    appointment_id: UUID | None = None
    line_items: list[LineItem] = Field(..., min_length=1)
    tax_rate_percent: Decimal = Decimal("0")
    discount: DiscountSpec = Field(default_factory=DiscountSpec)
    due_at: datetime | None = None
    notes: str | None = Field(None, max_length=2000)


class InvoiceUpdate(BaseModel):
    """Editable invoice inputs. Only allowed while the invoice is editable."""

    line_items: list[LineItem] | None = Field(None, min_length=1)
    tax_rate_percent: Decimal | None = None
    discount: DiscountSpec | None = None
    due_at: datetime | None = None
    notes: str | None = Field(None, max_length=2000)


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    invoice_number: str
    patient_id: UUID
    appointment_id: UUID | None = None
    line_items: list[LineItem]
    tax_rate_percent: Decimal
    discount: DiscountSpec
    amount_paid: Decimal = Decimal("0")
    payment_method: PaymentMethod | None = None
    payment_date: datetime | None = None
    due_at: datetime
    notes: str | None = None
    cancelled_at: datetime | None = None
    version: int = 1
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def totals(self) -> InvoiceTotals:
        """Subtotal, discount, tax and total recomputed from the stored inputs."""
        from core.billing import compute_invoice_totals

        return compute_invoice_totals(self.line_items, self.tax_rate_percent, self.discount)

    @property
    def total(self) -> Decimal:
        return self.totals.total

    @property
    def balance(self) -> Decimal:
        """Remaining amount owed, never negative."""
        from core.billing import balance_due

        return balance_due(self)

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    @property
    def is_editable(self) -> bool:
        """Line items, tax and discount may change until money is taken or it is cancelled."""
        return not self.is_cancelled and self.amount_paid == 0

    def status(self, now: datetime) -> PaymentStatus:
        """Payment status at `now`."""
        from core.billing import derive_status

        return derive_status(self, now)

    def to_view(self, now: datetime) -> dict[str, Any]:
        """JSON-ready representation with derived amounts and status for API responses."""
        data = self.model_dump(mode="json")
        data.update(self.totals.model_dump(mode="json"))
        data["balance"] = str(self.balance)
        data["status"] = self.status(now).value
        for item, raw in zip(data["line_items"], self.line_items):
            item["total_price"] = str(raw.total_price)
        return data


class PaymentCreate(BaseModel):
    """A payment taken at the front desk. Amount bounds are checked by the ledger."""

    amount: Decimal
    method: PaymentMethod = PaymentMethod.CASH


class Payment(BaseModel):
    """A recorded payment. Its receipt number is printed on the patient's receipt."""

    id: UUID
    invoice_id: UUID
    receipt_number: str
    amount: Decimal
    method: PaymentMethod
    recorded_by: UUID
    recorded_at: datetime

    model_config = {"from_attributes": True}


class RevenueSummary(BaseModel):
    """Collected revenue (sum of amounts paid) across live invoices."""

    currency: str
    total_revenue: Decimal
    monthly_revenue: Decimal
    month_start: datetime
