"""Request-scoped middleware for API requests."""

from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.permissions import Role
from utils.staff_context import StaffMember, set_current_staff, clear_current_staff


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class StaffContextMiddleware(BaseHTTPMiddleware):
    """Sets the acting staff member from headers forwarded by the auth gateway.

    Staff sign-in happens upstream; the gateway forwards:
    - X-Staff-ID: the staff member's UUID
    - X-Staff-Role: one of the Role values

    The middleware validates both, sets request.state.staff and the staff
    contextvar (used for audit attribution and capability checks), and
    clears the context once the request completes.

    Public paths bypass identification entirely.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    def _reject(self, request: Request, status_code: int, code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(
                code, message, getattr(request.state, "request_id", None)
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        raw_id = request.headers.get("X-Staff-ID")
        raw_role = request.headers.get("X-Staff-Role")

        if not raw_id or not raw_role:
            return self._reject(request, 401, ErrorCodes.NOT_AUTHENTICATED, "Staff identity required")

        try:
            staff_id = UUID(raw_id)
        except ValueError:
            return self._reject(request, 401, ErrorCodes.NOT_AUTHENTICATED, "Malformed X-Staff-ID header")

        try:
            role = Role(raw_role.lower())
        except ValueError:
            return self._reject(request, 403, ErrorCodes.PERMISSION_DENIED, f"Unknown staff role '{raw_role}'")

        staff = StaffMember(staff_id=staff_id, role=role.value)
        set_current_staff(staff)
        request.state.staff = staff

        try:
            return await call_next(request)
        finally:
            clear_current_staff()
