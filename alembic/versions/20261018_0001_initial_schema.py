"""Initial schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
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


role_enum = sa.Enum("STUDENT", "MENTOR", "ADMIN", name="role_enum", native_enum=False)
offer_type_enum = sa.Enum("ACCESS", "TIME", "BOTH", name="offer_type_enum", native_enum=False)
booking_type_enum = sa.Enum("ACCESS", "SESSION", name="booking_type_enum", native_enum=False)
booking_status_enum = sa.Enum(
    "PENDING",
    "CONFIRMED",
    "COMPLETED",
    "CANCELLED",
    "REFUNDED",
    name="booking_status_enum",
    native_enum=False,
)
payout_status_enum = sa.Enum("HELD", "PAID_OUT", "RELEASED", "REFUNDED", name="payout_status_enum", native_enum=False)
dispute_decision_enum = sa.Enum(
    "REFUND_STUDENT_FULL",
    "REFUND_STUDENT_PARTIAL",
    "PAYOUT_MENTOR_FULL",
    "SPLIT_50_50",
    "UNDER_REVIEW",
    "NO_ACTION",
    name="dispute_decision_enum",
    native_enum=False,
)
subscription_status_enum = sa.Enum(
    "ACTIVE",
    "PAST_DUE",
    "CANCELLED",
    name="subscription_status_enum",
    native_enum=False,
)
notification_kind_enum = sa.Enum(
    "BOOKING_CONFIRMED",
    "BOOKING_CANCELLED",
    "BOOKING_RESCHEDULED",
    "BOOKING_COMPLETED",
    "CONFIRMATION_REQUIRED",
    "SESSION_CONFIRMED",
    "FRAUD_REPORTED",
    "DISPUTE_RESOLVED",
    "PAYOUT_SENT",
    "SESSION_REMINDER_24H",
    "SESSION_REMINDER_15MIN",
    "SESSION_COMPLETION_REMINDER",
    "REVIEW_REMINDER",
    name="notification_kind_enum",
    native_enum=False,
)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "mentors",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("bio", sa.Text(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("offer_type", offer_type_enum, nullable=False),
        sa.Column("access_price", sa.Integer(), nullable=True),
        sa.Column("hourly_rate", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_trusted", sa.Boolean(), nullable=False),
        sa.Column("verified_bookings_count", sa.Integer(), nullable=False),
        sa.Column("stripe_connect_id", sa.String(length=128), nullable=True),
        sa.Column("stripe_onboarded", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_mentors_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_mentors_user_id"),
    )

    for table in ("available_slots", "blocked_slots"):
        extra = (
            sa.Column("is_free_session", sa.Boolean(), nullable=False)
            if table == "available_slots"
            else sa.Column("reason", sa.String(length=255), nullable=True)
        )
        op.create_table(
            table,
            _id_col(),
            _created_col(),
            _updated_col(),
            sa.Column("mentor_id", postgresql.UUID(as_uuid=True), nullable=False),
            _ts("start_at", nullable=False),
            _ts("end_at", nullable=False),
            extra,
            sa.ForeignKeyConstraint(["mentor_id"], ["mentors.id"], name=f"fk_{table}_mentor_id_mentors", ondelete="CASCADE"),
        )
        op.create_index(f"ix_{table}_mentor_id", table, ["mentor_id"], unique=False)
        op.create_index(f"ix_{table}_start_at", table, ["start_at"], unique=False)

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("mentor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", booking_type_enum, nullable=False),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("platform_fee", sa.Integer(), nullable=True),
        sa.Column("mentor_payout", sa.Integer(), nullable=True),
        _ts("scheduled_at"),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_free_session", sa.Boolean(), nullable=False),
        _ts("mentor_completed_at"),
        _ts("student_confirmed_at"),
        _ts("auto_confirm_at"),
        sa.Column("is_auto_confirmed", sa.Boolean(), nullable=False),
        sa.Column("is_fraud_reported", sa.Boolean(), nullable=False),
        _ts("fraud_reported_at"),
        sa.Column("fraud_reason", sa.Text(), nullable=True),
        _ts("cancelled_at"),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("payout_status", payout_status_enum, nullable=False),
        sa.Column("payout_id", sa.String(length=128), nullable=True),
        _ts("payout_released_at"),
        _ts("payout_hold_until"),
        sa.Column("dispute_payout_amount", sa.Integer(), nullable=True),
        _ts("transfer_reversed_at"),
        sa.Column("stripe_checkout_session_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        _ts("stripe_paid_at"),
        sa.Column("stripe_refund_id", sa.String(length=255), nullable=True),
        sa.Column("refund_amount", sa.Integer(), nullable=True),
        _ts("admin_reviewed_at"),
        sa.Column("admin_reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("admin_decision", dispute_decision_enum, nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        _ts("reminder_24h_sent_at"),
        _ts("reminder_15min_sent_at"),
        _ts("review_reminder_sent_at"),
        _ts("completion_reminder_sent_at"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], name="fk_bookings_student_id_users", ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["mentor_id"], ["mentors.id"], name="fk_bookings_mentor_id_mentors", ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["admin_reviewed_by"],
            ["users.id"],
            name="fk_bookings_admin_reviewed_by_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"], unique=False)
    op.create_index("ix_bookings_mentor_id", "bookings", ["mentor_id"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.create_index("ix_bookings_scheduled_at", "bookings", ["scheduled_at"], unique=False)
    op.create_index("ix_bookings_auto_confirm_at", "bookings", ["auto_confirm_at"], unique=False)
    op.create_index("ix_bookings_is_fraud_reported", "bookings", ["is_fraud_reported"], unique=False)
    op.create_index("ix_bookings_payout_status", "bookings", ["payout_status"], unique=False)
    op.create_index(
        "ix_bookings_stripe_checkout_session_id",
        "bookings",
        ["stripe_checkout_session_id"],
        unique=False,
    )

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("kind", notification_kind_enum, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=512), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_notifications_user_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["bookings.id"],
            name="fk_notifications_booking_id_bookings",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_booking_id", "notifications", ["booking_id"], unique=False)
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"], unique=False)

    op.create_table(
        "user_subscriptions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("mentor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("plan_name", sa.String(length=128), nullable=False),
        sa.Column("status", subscription_status_enum, nullable=False),
        sa.Column("stripe_subscription_id", sa.String(length=255), nullable=True),
        _ts("last_review_reminder_sent_at"),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_user_subscriptions_student_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["mentor_id"],
            ["mentors.id"],
            name="fk_user_subscriptions_mentor_id_mentors",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("stripe_subscription_id", name="uq_user_subscriptions_stripe_subscription_id"),
    )
    op.create_index("ix_user_subscriptions_student_id", "user_subscriptions", ["student_id"], unique=False)
    op.create_index("ix_user_subscriptions_mentor_id", "user_subscriptions", ["mentor_id"], unique=False)
    op.create_index("ix_user_subscriptions_status", "user_subscriptions", ["status"], unique=False)

    op.create_table(
        "reviews",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("mentor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("subscription_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], name="fk_reviews_author_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["mentor_id"], ["mentors.id"], name="fk_reviews_mentor_id_mentors", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], name="fk_reviews_booking_id_bookings", ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["subscription_id"],
            ["user_subscriptions.id"],
            name="fk_reviews_subscription_id_user_subscriptions",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("booking_id", name="uq_reviews_booking_id"),
    )
    op.create_index("ix_reviews_author_id", "reviews", ["author_id"], unique=False)
    op.create_index("ix_reviews_mentor_id", "reviews", ["mentor_id"], unique=False)
    op.create_index("ix_reviews_subscription_id", "reviews", ["subscription_id"], unique=False)

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
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_reviews_subscription_id", table_name="reviews")
    op.drop_index("ix_reviews_mentor_id", table_name="reviews")
    op.drop_index("ix_reviews_author_id", table_name="reviews")
    op.drop_table("reviews")

    op.drop_index("ix_user_subscriptions_status", table_name="user_subscriptions")
    op.drop_index("ix_user_subscriptions_mentor_id", table_name="user_subscriptions")
    op.drop_index("ix_user_subscriptions_student_id", table_name="user_subscriptions")
    op.drop_table("user_subscriptions")

    op.drop_index("ix_notifications_is_read", table_name="notifications")
    op.drop_index("ix_notifications_booking_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_bookings_stripe_checkout_session_id", table_name="bookings")
    op.drop_index("ix_bookings_payout_status", table_name="bookings")
    op.drop_index("ix_bookings_is_fraud_reported", table_name="bookings")
    op.drop_index("ix_bookings_auto_confirm_at", table_name="bookings")
    op.drop_index("ix_bookings_scheduled_at", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_mentor_id", table_name="bookings")
    op.drop_index("ix_bookings_student_id", table_name="bookings")
    op.drop_table("bookings")

    for table in ("blocked_slots", "available_slots"):
        op.drop_index(f"ix_{table}_start_at", table_name=table)
        op.drop_index(f"ix_{table}_mentor_id", table_name=table)
        op.drop_table(table)

    op.drop_table("mentors")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
