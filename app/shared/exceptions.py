"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class BusinessRuleException(AppException):
    """Raised when business rule validation fails."""

    status_code = 422
    code = "business_rule_violation"


class DomainValidationException(AppException):
    """Raised for malformed input that must not be retried."""

    status_code = 422
    code = "validation_error"


class InvalidStateTransitionException(ConflictException):
    """Raised when a booking lifecycle edge is not allowed."""

    code = "invalid_state_transition"


class SlotNoLongerAvailableException(ConflictException):
    """Raised when the requested slot was taken or is outside availability."""

    code = "slot_no_longer_available"


class PaymentDeclinedException(AppException):
    """Raised when the payment provider declines an authorization."""

    status_code = 402
    code = "payment_declined"


class PaymentGatewayException(AppException):
    """Raised when the payment provider fails for a non-decline reason."""

    status_code = 502
    code = "payment_gateway_error"


class PaymentGatewayTimeoutException(PaymentGatewayException):
    """Raised when a payment provider call exceeds its timeout."""

    status_code = 504
    code = "payment_gateway_timeout"


class IncrementalAuthorizationUnavailableException(BusinessRuleException):
    """Raised when the provider refuses to raise a held authorization."""

    code = "incremental_authorization_unavailable"


class PaymentAmountSyncException(ConflictException):
    """Raised when provider and booking amounts diverged and need an operator."""

    code = "payment_amount_sync_error"


class DisputeNotAllowedException(BusinessRuleException):
    """Raised when a booking is not in a disputable state."""

    code = "dispute_not_allowed"


class DisputeWindowUnresolvedException(BusinessRuleException):
    """Raised when a completed booking has no completion timestamp."""

    code = "dispute_window_unresolved"


class DisputeWindowClosedException(BusinessRuleException):
    """Raised when the post-completion dispute window has elapsed."""

    code = "dispute_window_closed"


class DisputeAlreadyExistsException(ConflictException):
    """Raised when a booking already has an open dispute."""

    code = "dispute_already_exists"


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
