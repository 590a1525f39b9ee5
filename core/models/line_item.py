"""Line item domain model.

Line items are embedded in their invoice rather than stored as their own rows.
Prices are Decimal in the clinic's currency; rounding to minor units happens
only when invoice totals are computed.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    """
    One billed service on an invoice.

    Frozen: editing a draft invoice replaces its line items wholesale.
    Quantity and unit price bounds are enforced by core.billing so every
    entry point reports the same InvalidLineItemError.
    """

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=500)
    unit_price: Decimal
    quantity: int = 1

    model_config = {"frozen": True}

    @property
    def total_price(self) -> Decimal:
        """unit_price × quantity, unrounded."""
        return self.unit_price * self.quantity
