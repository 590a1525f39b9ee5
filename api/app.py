"""
FastAPI application factory.

Serve with any ASGI server using the factory form, e.g.
`uvicorn api.app:create_app --factory`.
"""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware, StaffContextMiddleware
from core.config import BillingConfig
from core.events import InvoiceEvent
from core.event_bus import EventBus
from core.handlers.billing_activity_handler import handle_billing_activity

logger = logging.getLogger(__name__)


def build_services(config: BillingConfig, event_bus: EventBus) -> dict:
    """Wire services against the Vault-configured PostgreSQL database."""
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url
    from core.audit import AuditLogger
    from core.services.invoice_service import InvoiceService

    postgres = PostgresClient(get_database_url())
    return {
        "invoice": InvoiceService(postgres, AuditLogger(postgres), event_bus, config),
    }


def create_app(
    services: dict | None = None,
    config: BillingConfig | None = None,
    event_bus: EventBus | None = None
) -> FastAPI:
    """
    Build the billing API.

    Args:
        services: Pre-built services (tests); built from Vault config when None
        config: Billing tunables
        event_bus: Bus the services publish to; a new one when None
    """
    config = config or BillingConfig()
    event_bus = event_bus or EventBus()
    event_bus.subscribe(InvoiceEvent, handle_billing_activity(config.currency))

    if services is None:
        services = build_services(config, event_bus)

    app = FastAPI(title="Clinic Billing API")
    # Added last runs first: request IDs exist before identity is checked
    app.add_middleware(StaffContextMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"ok": True}

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    logger.info("Billing API ready (currency %s)", config.currency)
    return app
