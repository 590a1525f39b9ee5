"""
Role-based capabilities for clinic staff.

A single lookup table maps each role to what it may do. Callers ask
`require(capability)` instead of branching on role names.
"""

import logging
from enum import Enum

from core.exceptions import PermissionDeniedError
from utils.staff_context import get_current_staff

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Staff roles."""

    ADMIN = "admin"
    DERMATOLOGIST = "dermatologist"
    RECEPTIONIST = "receptionist"


class Capability(str, Enum):
    """Operations guarded by role."""

    BILLING_VIEW = "billing:view"
    BILLING_CREATE = "billing:create"
    BILLING_UPDATE = "billing:update"
    BILLING_RECORD_PAYMENT = "billing:record_payment"
    BILLING_CANCEL = "billing:cancel"
    BILLING_DELETE = "billing:delete"
    ANALYTICS_VIEW = "analytics:view"


_FRONT_DESK = frozenset({
    Capability.BILLING_VIEW,
    Capability.BILLING_CREATE,
    Capability.BILLING_UPDATE,
    Capability.BILLING_RECORD_PAYMENT,
    Capability.BILLING_CANCEL,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: _FRONT_DESK | {Capability.BILLING_DELETE, Capability.ANALYTICS_VIEW},
    Role.RECEPTIONIST: _FRONT_DESK,
    Role.DERMATOLOGIST: frozenset({Capability.BILLING_VIEW}),
}


def capabilities_for(role: str) -> frozenset[Capability]:
    """Capabilities of a role name. Unknown roles get none."""
    try:
        return ROLE_CAPABILITIES[Role(role)]
    except ValueError:
        return frozenset()


def has_capability(role: str, capability: Capability) -> bool:
    return capability in capabilities_for(role)


def require(capability: Capability) -> None:
    """
    Check the acting staff member holds a capability.

    Raises:
        RuntimeError: No staff context set
        PermissionDeniedError: Role lacks the capability
    """
    staff = get_current_staff()
    if not has_capability(staff.role, capability):
        logger.warning(
            "Permission denied: staff %s (%s) attempted %s",
            staff.staff_id, staff.role, capability.value,
        )
        raise PermissionDeniedError(staff.role, capability.value)
