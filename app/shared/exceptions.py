"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationException(AppException):
    """Raised when input is malformed before any state change."""

    status_code = 400
    code = "validation_error"


class BusinessRuleException(AppException):
    """Raised when an operation does not fit the current booking state."""

    status_code = 400
    code = "business_rule_violation"


class InvalidOfferException(BusinessRuleException):
    """Raised when a mentor does not sell the requested booking type."""

    code = "invalid_offer"


class NoFraudReportException(BusinessRuleException):
    """Raised when resolving a booking that has no fraud report."""

    code = "no_fraud_report"


class NoPaymentException(BusinessRuleException):
    """Raised when a booking has no captured payment to act on."""

    code = "no_payment"


class AuthenticationException(AppException):
    """Raised when the caller is not authenticated."""

    status_code = 401
    code = "unauthorized"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class RateLimitException(AppException):
    """Raised when a caller exceeds the request budget."""

    status_code = 429
    code = "rate_limited"


class ProviderException(AppException):
    """Raised when the payment provider rejects a primary financial leg."""

    status_code = 502
    code = "provider_error"


def _error_response(status_code: int, message: str, details: object | None = None) -> JSONResponse:
    content: dict[str, object] = {"ok": False, "error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return _error_response(exc.status_code, exc.message)


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return _error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as 400 with field details."""
    return _error_response(400, "Invalid data", jsonable_encoder(exc.errors()))


async def stale_data_exception_handler(_: Request, exc: StaleDataError) -> JSONResponse:
    """Concurrent update of the same row lost the race."""
    logger.warning("Concurrent modification detected: %s", exc)
    return _error_response(409, "Booking was modified concurrently, retry the request")


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return _error_response(500, "Internal server error")


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StaleDataError, stale_data_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
