"""Payment authorization gateway.

Bookings hold funds with manual-capture PaymentIntents: `authorize` places the
hold, `update_authorized_amount` raises it for time extensions, `capture`
charges it at check-out and `void` releases it on cancellation. The gateway
never deduplicates on its own; callers pass booking-scoped idempotency keys so
provider-side retries are safe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar
from uuid import UUID

import stripe

from app.core.config import get_settings
from app.core.enums import AuthorizationStatusEnum
from app.core.metrics import PAYMENT_GATEWAY_CALLS_TOTAL
from app.shared.exceptions import (
    IncrementalAuthorizationUnavailableException,
    PaymentDeclinedException,
    PaymentGatewayException,
    PaymentGatewayTimeoutException,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def authorize_key(booking_id: UUID | str) -> str:
    return f"booking-{booking_id}-authorize"


def capture_key(booking_id: UUID | str) -> str:
    return f"booking-{booking_id}-capture"


def void_key(booking_id: UUID | str) -> str:
    return f"booking-{booking_id}-void"


def extend_key(booking_id: UUID | str, total_extension_minutes: int) -> str:
    return f"booking-{booking_id}-extend-{total_extension_minutes}"


@dataclass(frozen=True, slots=True)
class AuthorizationResult:
    """Provider view of a held authorization."""

    authorization_id: str
    status: AuthorizationStatusEnum
    amount: int
    currency: str
    client_secret: str | None = None
    amount_received: int = 0
    booking_id: str | None = None


@dataclass(frozen=True, slots=True)
class CaptureResult:
    captured_amount: int
    status: AuthorizationStatusEnum


class PaymentGateway(Protocol):
    """Contract used by booking services; implemented for Stripe and by test fakes."""

    async def authorize(
        self,
        *,
        amount: int,
        currency: str,
        payer_reference: str | None,
        booking_id: UUID,
        payment_method: str | None = None,
    ) -> AuthorizationResult: ...

    async def update_authorized_amount(
        self,
        authorization_id: str,
        new_amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> AuthorizationStatusEnum: ...

    async def capture(
        self,
        authorization_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> CaptureResult: ...

    async def void(
        self,
        authorization_id: str,
        *,
        idempotency_key: str | None = None,
    ) -> AuthorizationStatusEnum: ...

    async def retrieve(self, authorization_id: str) -> AuthorizationResult: ...

    async def find_for_booking(self, booking_id: UUID) -> AuthorizationResult | None: ...


def read_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a key from a StripeObject or plain dict, treating None as missing."""
    try:
        value = obj[name]
    except (KeyError, TypeError):
        return getattr(obj, name, default)
    return default if value is None else value


def _status_of(intent: Any) -> AuthorizationStatusEnum:
    raw = str(read_field(intent, "status"))
    try:
        return AuthorizationStatusEnum(raw)
    except ValueError as exc:
        raise PaymentGatewayException(f"Unexpected authorization status from provider: {raw}") from exc


def result_from_intent(intent: Any) -> AuthorizationResult:
    """Map a PaymentIntent object (or its webhook payload) to AuthorizationResult."""
    metadata = read_field(intent, "metadata", {})
    return AuthorizationResult(
        authorization_id=str(read_field(intent, "id")),
        status=_status_of(intent),
        amount=int(read_field(intent, "amount", 0)),
        currency=str(read_field(intent, "currency", "")).upper(),
        client_secret=read_field(intent, "client_secret"),
        amount_received=int(read_field(intent, "amount_received", 0)),
        booking_id=read_field(metadata, "booking_id"),
    )


class StripePaymentGateway:
    """PaymentGateway on top of the blocking `stripe` SDK."""

    def __init__(self, api_key: str | None, timeout_seconds: float) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def _call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        if not self.api_key:
            PAYMENT_GATEWAY_CALLS_TOTAL.labels(operation=operation, outcome="error").inc()
            raise PaymentGatewayException("Payment provider is not configured")

        kwargs["api_key"] = self.api_key
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            PAYMENT_GATEWAY_CALLS_TOTAL.labels(operation=operation, outcome="timeout").inc()
            logger.warning("Payment provider %s timed out after %.1fs", operation, self.timeout_seconds)
            raise PaymentGatewayTimeoutException(f"Payment provider {operation} timed out") from exc
        except stripe.CardError as exc:
            PAYMENT_GATEWAY_CALLS_TOTAL.labels(operation=operation, outcome="declined").inc()
            logger.info("Payment provider declined %s: code=%s", operation, exc.code)
            raise PaymentDeclinedException(exc.user_message or "Card was declined") from exc
        except stripe.StripeError as exc:
            PAYMENT_GATEWAY_CALLS_TOTAL.labels(operation=operation, outcome="error").inc()
            logger.error("Payment provider %s failed: %s", operation, exc)
            raise PaymentGatewayException(f"Payment provider {operation} failed") from exc

        PAYMENT_GATEWAY_CALLS_TOTAL.labels(operation=operation, outcome="success").inc()
        return result

    async def authorize(
        self,
        *,
        amount: int,
        currency: str,
        payer_reference: str | None,
        booking_id: UUID,
        payment_method: str | None = None,
    ) -> AuthorizationResult:
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "capture_method": "manual",
            # Without this the hold can never be raised for time extensions.
            "payment_method_options": {"card": {"request_incremental_authorization": "if_available"}},
            "metadata": {"booking_id": str(booking_id)},
            "idempotency_key": authorize_key(booking_id),
        }
        if payer_reference:
            params["customer"] = payer_reference
        if payment_method:
            params["payment_method"] = payment_method
            params["confirm"] = True
        else:
            params["automatic_payment_methods"] = {"enabled": True}

        intent = await self._call("authorize", stripe.PaymentIntent.create, **params)
        logger.info(
            "Authorization created booking_id=%s authorization_id=%s status=%s",
            booking_id,
            read_field(intent, "id"),
            read_field(intent, "status"),
        )
        return result_from_intent(intent)

    async def update_authorized_amount(
        self,
        authorization_id: str,
        new_amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> AuthorizationStatusEnum:
        try:
            intent = await self._call(
                "update_authorized_amount",
                stripe.PaymentIntent.increment_authorization,
                authorization_id,
                amount=new_amount,
                idempotency_key=idempotency_key,
            )
        except PaymentGatewayException as exc:
            # Card networks may not grant incremental authorization; the provider rejects the request.
            if isinstance(exc.__cause__, stripe.InvalidRequestError):
                logger.warning(
                    "Authorization %s cannot be raised to %s: %s",
                    authorization_id,
                    new_amount,
                    exc.__cause__,
                )
                raise IncrementalAuthorizationUnavailableException(
                    "The held payment cannot be increased; extend with a new booking instead",
                ) from exc.__cause__
            raise
        return _status_of(intent)

    async def capture(
        self,
        authorization_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> CaptureResult:
        intent = await self._call(
            "capture",
            stripe.PaymentIntent.capture,
            authorization_id,
            amount_to_capture=amount,
            idempotency_key=idempotency_key,
        )
        return CaptureResult(
            captured_amount=int(read_field(intent, "amount_received", amount)),
            status=_status_of(intent),
        )

    async def void(
        self,
        authorization_id: str,
        *,
        idempotency_key: str | None = None,
    ) -> AuthorizationStatusEnum:
        intent = await self._call(
            "void",
            stripe.PaymentIntent.cancel,
            authorization_id,
            idempotency_key=idempotency_key,
        )
        return _status_of(intent)

    async def retrieve(self, authorization_id: str) -> AuthorizationResult:
        intent = await self._call("retrieve", stripe.PaymentIntent.retrieve, authorization_id)
        return result_from_intent(intent)

    async def find_for_booking(self, booking_id: UUID) -> AuthorizationResult | None:
        found = await self._call(
            "find_for_booking",
            stripe.PaymentIntent.search,
            query=f"metadata['booking_id']:'{booking_id}'",
            limit=1,
        )
        data = list(read_field(found, "data", []))
        if not data:
            return None
        return result_from_intent(data[0])


def get_payment_gateway() -> PaymentGateway:
    """Dependency provider for the configured payment gateway."""
    settings = get_settings()
    return StripePaymentGateway(
        api_key=settings.stripe_secret_key,
        timeout_seconds=settings.payment_gateway_timeout_seconds,
    )
