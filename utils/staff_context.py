"""Propagate the acting staff member through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class StaffMember:
    """Identity of the staff member performing a request."""

    staff_id: UUID
    role: str


_current_staff: ContextVar[StaffMember | None] = ContextVar("current_staff", default=None)


def get_current_staff() -> StaffMember:
    """
    Get the acting staff member from context.

    Raises RuntimeError if no staff context is set.
    Code that records who made a change must never run anonymously.
    """
    staff = _current_staff.get()
    if staff is None:
        raise RuntimeError(
            "No staff context set. This usually means you're calling "
            "staff-scoped code outside of an identified request."
        )
    return staff


def get_current_staff_id() -> UUID:
    """Shortcut for get_current_staff().staff_id."""
    return get_current_staff().staff_id


def set_current_staff(staff: StaffMember) -> None:
    """
    Set the acting staff member.

    Called by StaffContextMiddleware once the gateway headers are validated.
    """
    _current_staff.set(staff)


def clear_current_staff() -> None:
    """
    Clear staff context.

    Must be called in a finally block to prevent context leakage.
    """
    _current_staff.set(None)


@contextmanager
def staff_context(staff_id: UUID, role: str):
    """
    Context manager for temporarily acting as a staff member.

    Useful for tests, seed scripts and admin jobs.

    Example:
        with staff_context(admin_id, "admin"):
            invoice_service.cancel(invoice_id)
    """
    previous = _current_staff.get()
    set_current_staff(StaffMember(staff_id=staff_id, role=role))
    try:
        yield
    finally:
        if previous is None:
            clear_current_staff()
        else:
            set_current_staff(previous)
