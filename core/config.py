"""Billing configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Billing configuration.

    Secrets (database credentials) live in Vault; these are the plain
    business tunables.
    """

    # Invoices
    default_due_days: int = Field(
        default=30,
        description="Days until an invoice falls due when no due date is given",
        ge=0,
        le=365,
    )
    invoice_number_prefix: str = Field(
        default="INV",
        description="Prefix for generated invoice numbers",
        min_length=1,
        max_length=10,
    )
    receipt_number_prefix: str = Field(
        default="RCP",
        description="Prefix for generated payment receipt numbers",
        min_length=1,
        max_length=10,
    )
    currency: str = Field(
        default="PKR",
        description="ISO 4217 code shown alongside amounts",
        min_length=3,
        max_length=3,
    )

    # Concurrency
    payment_conflict_retries: int = Field(
        default=3,
        description="Times a write is retried after losing a version race",
        ge=0,
        le=10,
    )

    # Reads
    status_scan_page_size: int = Field(
        default=200,
        description="Rows fetched per query when listing invoices by derived status",
        ge=1,
        le=5000,
    )
