"""Shared test fixtures for the billing test suite."""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from clients.vault_client import reset_vault_cache
from core.models import DiscountSpec, Invoice, LineItem
from utils.staff_context import clear_current_staff, staff_context

reset_vault_cache()


# =============================================================================
# TEST STAFF CONSTANTS
# =============================================================================

RECEPTIONIST_ID = UUID("00000000-0000-0000-0000-000000000001")
ADMIN_ID = UUID("00000000-0000-0000-0000-000000000002")
DERMATOLOGIST_ID = UUID("00000000-0000-0000-0000-000000000003")

# Fixed reference time so status derivation is deterministic
NOW = datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)


# =============================================================================
# STAFF CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_staff_context():
    """Ensure clean staff context before and after each test."""
    clear_current_staff()
    yield
    clear_current_staff()


@pytest.fixture
def as_receptionist():
    """Act as the front-desk receptionist."""
    with staff_context(RECEPTIONIST_ID, "receptionist"):
        yield RECEPTIONIST_ID


@pytest.fixture
def as_admin():
    """Act as the clinic administrator."""
    with staff_context(ADMIN_ID, "admin"):
        yield ADMIN_ID


@pytest.fixture
def as_dermatologist():
    """Act as a dermatologist (read-only billing access)."""
    with staff_context(DERMATOLOGIST_ID, "dermatologist"):
        yield DERMATOLOGIST_ID


# =============================================================================
# IN-MEMORY INVOICE FIXTURES
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_invoice():
    """Factory for in-memory invoices; no DB needed."""

    def _make(
        line_items=None,
        tax_rate_percent="0",
        discount=None,
        amount_paid="0",
        due_at=None,
        cancelled_at=None,
        version=1,
        **overrides
    ) -> Invoice:
        if line_items is None:
            line_items = [LineItem(name="Consultation", unit_price=Decimal("2500"), quantity=1)]
        fields = dict(
            id=uuid4(),
            invoice_number="INV-20260315-0001",
            patient_id=uuid4(),
            line_items=line_items,
            tax_rate_percent=Decimal(tax_rate_percent),
            discount=discount or DiscountSpec.none(),
            amount_paid=Decimal(amount_paid),
            due_at=due_at or NOW + timedelta(days=30),
            cancelled_at=cancelled_at,
            version=version,
            created_by=RECEPTIONIST_ID,
            created_at=NOW - timedelta(days=1),
            updated_at=NOW - timedelta(days=1),
        )
        fields.update(overrides)
        return Invoice(**fields)

    return _make


# =============================================================================
# DATABASE FIXTURES (integration tests only)
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient; skips when Vault is not configured."""
    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set; integration database unavailable")

    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url

    client = PostgresClient(get_database_url())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty the billing tables before an integration test."""
    db.execute("TRUNCATE payments, invoices, audit_log CASCADE")
    yield db
