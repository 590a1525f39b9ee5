"""Tests for GET /api/data unified read endpoint."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from core.models import LineItem, Payment, PaymentMethod, PaymentStatus, RevenueSummary

FAR_FUTURE = datetime(2099, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def invoice(make_invoice):
    return make_invoice(
        line_items=[LineItem(name="Consultation", unit_price=Decimal("2500"))],
        due_at=FAR_FUTURE,
    )


# =============================================================================
# VALIDATION
# =============================================================================


class TestDataValidation:

    def test_missing_type_returns_400(self, client):
        response = client.get("/api/data")

        assert response.status_code == 400
        assert "'type'" in response.json()["error"]["message"]

    def test_unknown_type_returns_400(self, client):
        response = client.get("/api/data", params={"type": "patients"})

        assert response.status_code == 400
        assert "Valid types" in response.json()["error"]["message"]

    def test_limit_out_of_range_returns_422(self, client):
        response = client.get("/api/data", params={"type": "invoices", "limit": 0})

        assert response.status_code == 422

    def test_unknown_status_returns_400(self, client):
        response = client.get("/api/data", params={"type": "invoices", "status": "refunded"})

        assert response.status_code == 400

    def test_naive_date_returns_400(self, client):
        response = client.get("/api/data", params={"type": "invoices", "start": "2026-03-01T00:00:00"})

        assert response.status_code == 400
        assert "naive" in response.json()["error"]["message"]

    def test_anonymous_returns_401(self, anonymous_client):
        response = anonymous_client.get("/api/data", params={"type": "invoices"})

        assert response.status_code == 401


# =============================================================================
# INVOICES
# =============================================================================


class TestInvoices:

    def test_get_by_id_includes_derived_fields(self, client, invoice_service, invoice):
        invoice_service.get_by_id.return_value = invoice

        response = client.get("/api/data", params={"type": "invoices", "id": str(invoice.id)})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(invoice.id)
        assert data["subtotal"] == "2500.00"
        assert data["total"] == "2500.00"
        assert data["balance"] == "2500.00"
        assert data["status"] == "pending"

    def test_get_by_id_missing_returns_404(self, client, invoice_service):
        invoice_service.get_by_id.return_value = None

        response = client.get("/api/data", params={"type": "invoices", "id": str(uuid4())})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_include_payments_and_history(self, client, invoice_service, invoice):
        invoice_service.get_by_id.return_value = invoice
        invoice_service.list_payments.return_value = [Payment(
            id=uuid4(), invoice_id=invoice.id,
            receipt_number="RCP-INV-20260315-0001-01",
            amount=Decimal("500"), method=PaymentMethod.CASH,
            recorded_by=uuid4(), recorded_at=FAR_FUTURE,
        )]
        invoice_service.get_history.return_value = [{"action": "create"}]

        response = client.get("/api/data", params={
            "type": "invoices", "id": str(invoice.id), "include": "payments,history",
        })

        data = response.json()["data"]
        assert data["payments"][0]["amount"] == "500"
        assert data["history"] == [{"action": "create"}]

    def test_list_passes_filters(self, client, invoice_service, invoice):
        invoice_service.list_invoices.return_value = [invoice]
        patient_id = uuid4()

        response = client.get("/api/data", params={
            "type": "invoices",
            "patient_id": str(patient_id),
            "status": "overdue",
            "start": "2026-03-01T00:00:00Z",
            "limit": 10,
        })

        assert response.status_code == 200
        assert len(response.json()["data"]) == 1
        kwargs = invoice_service.list_invoices.call_args.kwargs
        assert kwargs["patient_id"] == patient_id
        assert kwargs["status"] == PaymentStatus.OVERDUE
        assert kwargs["start"] == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert kwargs["end"] is None
        assert kwargs["limit"] == 10

    def test_dermatologist_can_read(self, dermatologist_client, invoice_service):
        invoice_service.list_invoices.return_value = []

        response = dermatologist_client.get("/api/data", params={"type": "invoices"})

        assert response.status_code == 200
        assert response.json()["data"] == []


# =============================================================================
# PAYMENTS
# =============================================================================


class TestPayments:

    def test_requires_invoice_id(self, client):
        response = client.get("/api/data", params={"type": "payments"})

        assert response.status_code == 400
        assert "invoice_id" in response.json()["error"]["message"]

    def test_lists_payments(self, client, invoice_service, invoice):
        invoice_service.list_payments.return_value = []

        response = client.get("/api/data", params={"type": "payments", "invoice_id": str(invoice.id)})

        assert response.status_code == 200
        invoice_service.list_payments.assert_called_once_with(invoice.id)


# =============================================================================
# REVENUE
# =============================================================================


class TestRevenue:

    @pytest.fixture
    def summary(self):
        return RevenueSummary(
            currency="PKR",
            total_revenue=Decimal("11000.00"),
            monthly_revenue=Decimal("3000.00"),
            month_start=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

    def test_admin_sees_revenue(self, admin_client, invoice_service, summary):
        invoice_service.revenue_summary.return_value = summary

        response = admin_client.get("/api/data/revenue")

        assert response.status_code == 200
        assert response.json()["data"]["total_revenue"] == "11000.00"
        assert response.json()["data"]["currency"] == "PKR"

    def test_receptionist_cannot_see_revenue(self, client, invoice_service):
        response = client.get("/api/data/revenue")

        assert response.status_code == 403
        invoice_service.revenue_summary.assert_not_called()
