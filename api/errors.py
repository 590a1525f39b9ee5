"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    BillingError,
    ConcurrentModificationError,
    InvalidDiscountError,
    InvalidLineItemError,
    InvalidPaymentAmountError,
    InvalidTaxRateError,
    InvoiceClosedError,
    InvoiceLockedError,
    InvoiceNotFoundError,
    OverpaymentRejectedError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

# Billing error → (HTTP status, error code)
BILLING_ERROR_MAP: dict[type[BillingError], tuple[int, str]] = {
    InvoiceNotFoundError: (404, ErrorCodes.NOT_FOUND),
    InvalidLineItemError: (400, ErrorCodes.INVALID_LINE_ITEM),
    InvalidDiscountError: (400, ErrorCodes.INVALID_DISCOUNT),
    InvalidTaxRateError: (400, ErrorCodes.INVALID_TAX_RATE),
    InvalidPaymentAmountError: (400, ErrorCodes.INVALID_PAYMENT_AMOUNT),
    OverpaymentRejectedError: (409, ErrorCodes.OVERPAYMENT_REJECTED),
    InvoiceClosedError: (409, ErrorCodes.INVOICE_CLOSED),
    InvoiceLockedError: (409, ErrorCodes.INVOICE_LOCKED),
    ConcurrentModificationError: (409, ErrorCodes.CONCURRENT_MODIFICATION),
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, _request_id(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        status_code, code = BILLING_ERROR_MAP.get(type(exc), (400, ErrorCodes.INVALID_REQUEST))
        return _error(request, status_code, code, str(exc))

    @app.exception_handler(PermissionDeniedError)
    async def permission_error_handler(request: Request, exc: PermissionDeniedError):
        return _error(request, 403, ErrorCodes.PERMISSION_DENIED, str(exc))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors(include_url=False)))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _error(request, 404, ErrorCodes.NOT_FOUND, message)
        return _error(request, 400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
