"""Unified API response format and error codes."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Unique request identifier for tracing")


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta(request_id: str | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id or str(uuid4()))


def success_response(data: Any, request_id: str | None = None) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, data=data, error=None, meta=_meta(request_id))


def error_response(code: str, message: str, request_id: str | None = None) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(code=code, message=message),
        meta=_meta(request_id),
    )


class ErrorCodes:
    """Standard error codes for consistent error handling."""

    # Identity & Authorization
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Invoice calculation
    INVALID_LINE_ITEM = "INVALID_LINE_ITEM"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"
    INVALID_TAX_RATE = "INVALID_TAX_RATE"

    # Payments & lifecycle
    INVALID_PAYMENT_AMOUNT = "INVALID_PAYMENT_AMOUNT"
    OVERPAYMENT_REJECTED = "OVERPAYMENT_REJECTED"
    INVOICE_CLOSED = "INVOICE_CLOSED"
    INVOICE_LOCKED = "INVOICE_LOCKED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
