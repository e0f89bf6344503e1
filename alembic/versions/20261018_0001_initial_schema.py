"""Initial schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Non-native enums store member names.
booking_status_enum = sa.Enum(
    "PENDING_PAYMENT",
    "AUTHORIZED",
    "CONFIRMED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELED",
    "PAYMENT_FAILED",
    "DISPUTED",
    name="booking_status_enum",
    native_enum=False,
)
authorization_status_enum = sa.Enum(
    "REQUIRES_PAYMENT_METHOD",
    "REQUIRES_CONFIRMATION",
    "REQUIRES_ACTION",
    "PROCESSING",
    "REQUIRES_CAPTURE",
    "SUCCEEDED",
    "CANCELED",
    "FAILED",
    "REFUNDED",
    name="authorization_status_enum",
    native_enum=False,
)
cancellation_initiator_enum = sa.Enum(
    "CUSTOMER", "PROFESSIONAL", "SYSTEM", "ADMIN", name="cancellation_initiator_enum", native_enum=False
)
dispute_reason_enum = sa.Enum(
    "INCOMPLETE_SERVICE",
    "QUALITY_ISSUES",
    "LATE_ARRIVAL",
    "NO_SHOW",
    "PROPERTY_DAMAGE",
    "UNPROFESSIONAL_CONDUCT",
    "SAFETY_CONCERN",
    "OTHER",
    name="dispute_reason_enum",
    native_enum=False,
)
dispute_status_enum = sa.Enum(
    "PENDING", "INVESTIGATING", "RESOLVED", "DISMISSED", name="dispute_status_enum", native_enum=False
)
reconciliation_kind_enum = sa.Enum(
    "EXTENSION_PERSIST_FAILED",
    "CAPTURE_AMOUNT_MISMATCH",
    "CAPTURE_PERSIST_FAILED",
    "ORPHAN_AUTHORIZATION",
    "STALE_EVENT_IGNORED",
    name="reconciliation_kind_enum",
    native_enum=False,
)
reconciliation_status_enum = sa.Enum("OPEN", "RESOLVED", name="reconciliation_status_enum", native_enum=False)
notification_status_enum = sa.Enum("PENDING", "SENT", "FAILED", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("PENDING", "PROCESSED", "FAILED", name="outbox_status_enum", native_enum=False)

ACTIVE_BOOKING_PREDICATE = "status IN ('PENDING_PAYMENT', 'AUTHORIZED', 'CONFIRMED', 'IN_PROGRESS')"


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    # Needed for the equality operator on UUIDs inside the booking exclusion constraint.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "professional_profiles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("professional_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("hourly_rate", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("working_hours", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("buffer_time_minutes", sa.Integer(), nullable=False),
        sa.Column("max_bookings_per_day", sa.Integer(), nullable=False),
        sa.Column("advance_booking_days", sa.Integer(), nullable=False),
        sa.Column("is_accepting_bookings", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("professional_id", name="uq_professional_profiles_professional_id"),
    )

    op.create_table(
        "professional_blocked_dates",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("professional_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("blocked_on", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("professional_id", "blocked_on", name="uq_professional_blocked_dates_day"),
    )
    op.create_index(
        "ix_professional_blocked_dates_professional_id",
        "professional_blocked_dates",
        ["professional_id"],
        unique=False,
    )

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("professional_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("reserved_during", postgresql.TSTZRANGE(), nullable=False),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("service_name", sa.String(length=255), nullable=False),
        sa.Column("service_hourly_rate", sa.Integer(), nullable=True),
        sa.Column("amount_estimated", sa.Integer(), nullable=False),
        sa.Column("amount_authorized", sa.Integer(), nullable=False),
        sa.Column("amount_captured", sa.Integer(), nullable=True),
        sa.Column("time_extension_minutes", sa.Integer(), nullable=False),
        sa.Column("time_extension_amount", sa.Integer(), nullable=False),
        sa.Column("authorization_id", sa.String(length=255), nullable=True),
        sa.Column("authorization_status", authorization_status_enum, nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("canceled_by", cancellation_initiator_enum, nullable=True),
        sa.Column("address", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.UniqueConstraint("authorization_id", name="uq_bookings_authorization_id"),
        sa.CheckConstraint("scheduled_end > scheduled_start", name="ck_bookings_schedule_order"),
        sa.CheckConstraint(
            "amount_captured IS NULL OR amount_captured <= amount_authorized",
            name="ck_bookings_capture_within_authorization",
        ),
        postgresql.ExcludeConstraint(
            ("professional_id", "="),
            ("reserved_during", "&&"),
            name="ex_bookings_professional_reserved_during",
            using="gist",
            where=sa.text(ACTIVE_BOOKING_PREDICATE),
        ),
    )
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"], unique=False)
    op.create_index("ix_bookings_professional_id", "bookings", ["professional_id"], unique=False)
    op.create_index("ix_bookings_scheduled_start", "bookings", ["scheduled_start"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.create_index("ix_bookings_completed_at", "bookings", ["completed_at"], unique=False)

    op.create_table(
        "disputes",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("professional_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", dispute_reason_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", dispute_status_enum, nullable=False),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], name="fk_disputes_booking_id_bookings", ondelete="CASCADE"),
    )
    op.create_index("ix_disputes_booking_id", "disputes", ["booking_id"], unique=False)
    op.create_index("ix_disputes_customer_id", "disputes", ["customer_id"], unique=False)
    op.create_index("ix_disputes_professional_id", "disputes", ["professional_id"], unique=False)
    op.create_index("ix_disputes_status", "disputes", ["status"], unique=False)
    op.create_index(
        "uq_disputes_open_booking",
        "disputes",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'INVESTIGATING')"),
    )

    op.create_table(
        "reconciliation_issues",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("authorization_id", sa.String(length=255), nullable=True),
        sa.Column("kind", reconciliation_kind_enum, nullable=False),
        sa.Column("status", reconciliation_status_enum, nullable=False),
        sa.Column("expected_amount", sa.Integer(), nullable=True),
        sa.Column("provider_amount", sa.Integer(), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_reconciliation_issues_booking_id", "reconciliation_issues", ["booking_id"], unique=False)
    op.create_index(
        "ix_reconciliation_issues_authorization_id", "reconciliation_issues", ["authorization_id"], unique=False
    )
    op.create_index("ix_reconciliation_issues_kind", "reconciliation_issues", ["kind"], unique=False)
    op.create_index("ix_reconciliation_issues_status", "reconciliation_issues", ["status"], unique=False)
    op.create_index(
        "uq_reconciliation_issues_open_event",
        "reconciliation_issues",
        ["kind", sa.text("(details ->> 'event_id')")],
        unique=True,
        postgresql_where=sa.text("status = 'OPEN' AND details ->> 'event_id' IS NOT NULL"),
    )

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_status", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("uq_reconciliation_issues_open_event", table_name="reconciliation_issues")
    op.drop_index("ix_reconciliation_issues_status", table_name="reconciliation_issues")
    op.drop_index("ix_reconciliation_issues_kind", table_name="reconciliation_issues")
    op.drop_index("ix_reconciliation_issues_authorization_id", table_name="reconciliation_issues")
    op.drop_index("ix_reconciliation_issues_booking_id", table_name="reconciliation_issues")
    op.drop_table("reconciliation_issues")

    op.drop_index("uq_disputes_open_booking", table_name="disputes")
    op.drop_index("ix_disputes_status", table_name="disputes")
    op.drop_index("ix_disputes_professional_id", table_name="disputes")
    op.drop_index("ix_disputes_customer_id", table_name="disputes")
    op.drop_index("ix_disputes_booking_id", table_name="disputes")
    op.drop_table("disputes")

    op.drop_index("ix_bookings_completed_at", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_scheduled_start", table_name="bookings")
    op.drop_index("ix_bookings_professional_id", table_name="bookings")
    op.drop_index("ix_bookings_customer_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_professional_blocked_dates_professional_id", table_name="professional_blocked_dates")
    op.drop_table("professional_blocked_dates")

    op.drop_table("professional_profiles")
