"""HTTP interface for clinic billing."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)

from api.app import create_app
