"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """Actor roles supplied by the identity provider."""

    CUSTOMER = "customer"
    PROFESSIONAL = "professional"
    ADMIN = "admin"


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    PENDING_PAYMENT = "pending_payment"
    AUTHORIZED = "authorized"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    PAYMENT_FAILED = "payment_failed"
    DISPUTED = "disputed"


class AuthorizationStatusEnum(StrEnum):
    """Mirror of the payment provider authorization status."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"
    FAILED = "failed"
    REFUNDED = "refunded"


class CancellationInitiatorEnum(StrEnum):
    """Who asked for a booking cancellation."""

    CUSTOMER = "customer"
    PROFESSIONAL = "professional"
    SYSTEM = "system"
    ADMIN = "admin"


class AvailabilityStatusEnum(StrEnum):
    """Per-day availability classification."""

    AVAILABLE = "available"
    LIMITED = "limited"
    BOOKED = "booked"
    BLOCKED = "blocked"


class DisputeStatusEnum(StrEnum):
    """Dispute review status."""

    PENDING = "pending"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class DisputeReasonEnum(StrEnum):
    """Reason selected by the customer when filing a dispute."""

    INCOMPLETE_SERVICE = "incomplete_service"
    QUALITY_ISSUES = "quality_issues"
    LATE_ARRIVAL = "late_arrival"
    NO_SHOW = "no_show"
    PROPERTY_DAMAGE = "property_damage"
    UNPROFESSIONAL_CONDUCT = "unprofessional_conduct"
    SAFETY_CONCERN = "safety_concern"
    OTHER = "other"


class ReconciliationKindEnum(StrEnum):
    """Inconsistency windows surfaced to operators."""

    EXTENSION_PERSIST_FAILED = "extension_persist_failed"
    CAPTURE_AMOUNT_MISMATCH = "capture_amount_mismatch"
    CAPTURE_PERSIST_FAILED = "capture_persist_failed"
    ORPHAN_AUTHORIZATION = "orphan_authorization"
    STALE_EVENT_IGNORED = "stale_event_ignored"


class ReconciliationStatusEnum(StrEnum):
    """Reconciliation issue status."""

    OPEN = "open"
    RESOLVED = "resolved"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class WebhookResultEnum(StrEnum):
    """How a payment provider event was handled."""

    APPLIED = "applied"
    NOOP = "noop"
    STALE = "stale"
    IGNORED = "ignored"
    UNMATCHED = "unmatched"
