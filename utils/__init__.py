"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, parse_iso, days_from, month_bounds
from utils.staff_context import (
    StaffMember,
    get_current_staff,
    get_current_staff_id,
    set_current_staff,
    clear_current_staff,
    staff_context,
)
