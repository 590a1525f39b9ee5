"""
Audit trail for billing changes.

Every invoice mutation and every payment is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Staff-attributed (who made the change)
- Detailed (captures old and new values)
"""

import json
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.staff_context import get_current_staff_id
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at", "version"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at", "version"}
    changes = {}

    for key in sorted(set(old) | set(new)):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


def _dumps(value: Any) -> str:
    # Decimal amounts are written as strings so no precision is lost
    return json.dumps(value, default=str)


class AuditLogger:
    """
    Audit trail writer and reader.

    Pass Pydantic models through model_dump(mode="json") so UUIDs, datetimes
    and Decimals arrive as JSON-compatible strings.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={"created": invoice.model_dump(mode="json")}
        )

        history = audit.get_entity_history("invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        staff_id: UUID | None = None,
        cursor=None
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("invoice", "payment")
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            staff_id: Staff member who made the change (defaults to current context)
            cursor: Open transaction cursor; when given the entry commits with it

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        if staff_id is None:
            staff_id = get_current_staff_id()

        query = """
            INSERT INTO audit_log (id, staff_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        params = (
            uuid4(),
            staff_id,
            entity_type,
            entity_id,
            action.value,
            Json(changes, dumps=_dumps),
            now_utc()
        )

        if cursor is not None:
            cursor.execute(query, self.postgres.convert_params(params))
        else:
            self.postgres.execute(query, params)

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, staff_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )
