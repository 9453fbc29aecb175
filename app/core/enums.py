"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


class OfferTypeEnum(StrEnum):
    """What a mentor sells."""

    ACCESS = "ACCESS"
    TIME = "TIME"
    BOTH = "BOTH"


class BookingTypeEnum(StrEnum):
    """Kind of purchase."""

    ACCESS = "ACCESS"
    SESSION = "SESSION"


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PayoutStatusEnum(StrEnum):
    """Mentor payout status of a booking."""

    HELD = "HELD"
    PAID_OUT = "PAID_OUT"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"


class DisputeDecisionEnum(StrEnum):
    """Admin decision on a fraud-reported booking."""

    REFUND_STUDENT_FULL = "REFUND_STUDENT_FULL"
    REFUND_STUDENT_PARTIAL = "REFUND_STUDENT_PARTIAL"
    PAYOUT_MENTOR_FULL = "PAYOUT_MENTOR_FULL"
    SPLIT_50_50 = "SPLIT_50_50"
    UNDER_REVIEW = "UNDER_REVIEW"
    NO_ACTION = "NO_ACTION"


class SubscriptionStatusEnum(StrEnum):
    """Recurring subscription status."""

    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


class NotificationKindEnum(StrEnum):
    """In-app notification kinds."""

    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_RESCHEDULED = "BOOKING_RESCHEDULED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    SESSION_CONFIRMED = "SESSION_CONFIRMED"
    FRAUD_REPORTED = "FRAUD_REPORTED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
    PAYOUT_SENT = "PAYOUT_SENT"
    SESSION_REMINDER_24H = "SESSION_REMINDER_24H"
    SESSION_REMINDER_15MIN = "SESSION_REMINDER_15MIN"
    SESSION_COMPLETION_REMINDER = "SESSION_COMPLETION_REMINDER"
    REVIEW_REMINDER = "REVIEW_REMINDER"


class BookingPhaseEnum(StrEnum):
    """Read-side view of where a booking sits in its lifecycle."""

    PENDING_PAYMENT = "PENDING_PAYMENT"
    SCHEDULED = "SCHEDULED"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    VERIFIED = "VERIFIED"
    FRAUD_REPORTED = "FRAUD_REPORTED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
