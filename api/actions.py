"""POST /api/actions — unified mutation endpoint."""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from api.base import success_response
from core.models import DiscountSpec, InvoiceCreate, InvoiceUpdate, LineItem, PaymentCreate
from core.permissions import Capability, require
from utils.timezone import now_utc


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


class QuoteRequest(BaseModel):
    line_items: list[LineItem] = Field(..., min_length=1)
    tax_rate_percent: Decimal = Decimal("0")
    discount: DiscountSpec = Field(default_factory=DiscountSpec)


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(services["invoice"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        require(handler.ALLOWED_ACTIONS[body.action])

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(
            result, getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


def _invoice_id(data: dict) -> UUID:
    if "id" not in data:
        raise ValueError("'id' is required")
    return UUID(str(data.pop("id")))


class InvoiceHandler:
    # action → capability required to perform it
    ALLOWED_ACTIONS = {
        "quote": Capability.BILLING_VIEW,
        "create": Capability.BILLING_CREATE,
        "update": Capability.BILLING_UPDATE,
        "record_payment": Capability.BILLING_RECORD_PAYMENT,
        "cancel": Capability.BILLING_CANCEL,
        "delete": Capability.BILLING_DELETE,
    }

    def __init__(self, service):
        self.service = service

    def _handle_quote(self, data: dict):
        quote = QuoteRequest(**data)
        totals = self.service.quote(quote.line_items, quote.tax_rate_percent, quote.discount)
        return totals.model_dump(mode="json")

    def _handle_create(self, data: dict):
        invoice = self.service.create(InvoiceCreate(**data))
        return invoice.to_view(now_utc())

    def _handle_update(self, data: dict):
        invoice_id = _invoice_id(data)
        invoice = self.service.update(invoice_id, InvoiceUpdate(**data))
        return invoice.to_view(now_utc())

    def _handle_record_payment(self, data: dict):
        invoice_id = _invoice_id(data)
        invoice, payment = self.service.record_payment(invoice_id, PaymentCreate(**data))
        return {
            "invoice": invoice.to_view(now_utc()),
            "payment": payment.model_dump(mode="json"),
        }

    def _handle_cancel(self, data: dict):
        invoice = self.service.cancel(_invoice_id(data))
        return invoice.to_view(now_utc())

    def _handle_delete(self, data: dict):
        invoice_id = _invoice_id(data)
        deleted = self.service.delete(invoice_id)
        if not deleted:
            raise ValueError(f"Invoice {invoice_id} not found")
        return {"deleted": True}
