"""GET /api/data — unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.models import PaymentStatus
from core.permissions import Capability, require
from utils.timezone import now_utc, parse_iso


VALID_TYPES = {"invoices", "payments"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/revenue")
    async def revenue(request: Request):
        require(Capability.ANALYTICS_VIEW)
        summary = invoice_svc.revenue_summary()
        return success_response(
            summary.model_dump(mode="json"), getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        patient_id: str | None = Query(None),
        invoice_id: str | None = Query(None),
        status: str | None = Query(None),
        start: str | None = Query(None),
        end: str | None = Query(None),
        include: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        require(Capability.BILLING_VIEW)
        includes = set(include.split(",")) if include else set()

        if type == "invoices":
            data = _handle_invoices(invoice_svc, id, patient_id, status, start, end, includes, limit)
        else:
            data = _handle_payments(invoice_svc, invoice_id)

        return success_response(
            data, getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


def _handle_invoices(invoice_svc, id, patient_id, status, start, end, includes, limit):
    now = now_utc()

    if id:
        invoice = invoice_svc.get_by_id(UUID(id))
        if invoice is None:
            raise ValueError(f"Invoice {id} not found")

        data = invoice.to_view(now)
        if "payments" in includes:
            payments = invoice_svc.list_payments(invoice.id)
            data["payments"] = [p.model_dump(mode="json") for p in payments]
        if "history" in includes:
            data["history"] = invoice_svc.get_history(invoice.id)
        return data

    invoices = invoice_svc.list_invoices(
        patient_id=UUID(patient_id) if patient_id else None,
        status=PaymentStatus(status) if status else None,
        start=parse_iso(start) if start else None,
        end=parse_iso(end) if end else None,
        limit=limit,
        now=now,
    )
    return [inv.to_view(now) for inv in invoices]


def _handle_payments(invoice_svc, invoice_id):
    if not invoice_id:
        raise ValueError("'payments' type requires 'invoice_id' parameter")

    payments = invoice_svc.list_payments(UUID(invoice_id))
    return [p.model_dump(mode="json") for p in payments]
