"""API test fixtures — TestClient over the real app with a mocked invoice service."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.services.invoice_service import InvoiceService

RECEPTIONIST_HEADERS = {
    "X-Staff-ID": "00000000-0000-0000-0000-000000000001",
    "X-Staff-Role": "receptionist",
}
ADMIN_HEADERS = {
    "X-Staff-ID": "00000000-0000-0000-0000-000000000002",
    "X-Staff-Role": "admin",
}
DERMATOLOGIST_HEADERS = {
    "X-Staff-ID": "00000000-0000-0000-0000-000000000003",
    "X-Staff-Role": "dermatologist",
}


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def invoice_service():
    """Mock with InvoiceService's interface; tests script its return values."""
    return Mock(spec=InvoiceService)


@pytest.fixture
def services(invoice_service):
    return {"invoice": invoice_service}


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """Billing app with staff middleware, error handlers, and data/actions routes."""
    return create_app(services=services)


def _client(app, headers=None):
    client = TestClient(app, raise_server_exceptions=False)
    if headers:
        client.headers.update(headers)
    return client


@pytest.fixture
def client(app):
    """Client acting as the front-desk receptionist."""
    return _client(app, RECEPTIONIST_HEADERS)


@pytest.fixture
def admin_client(app):
    return _client(app, ADMIN_HEADERS)


@pytest.fixture
def dermatologist_client(app):
    return _client(app, DERMATOLOGIST_HEADERS)


@pytest.fixture
def anonymous_client(app):
    """Client without gateway identity headers."""
    return _client(app)
