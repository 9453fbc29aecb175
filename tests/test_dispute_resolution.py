from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

import app.modules.disputes.service as dispute_service_module
from app.core.enums import (
    BookingStatusEnum,
    DisputeDecisionEnum,
    NotificationKindEnum,
    PayoutStatusEnum,
    RoleEnum,
)
from app.modules.disputes.schemas import DisputeResolveRequest
from app.modules.disputes.service import DisputeService, compute_resolution
from app.modules.payments.provider import ProviderError, ProviderResult
from app.shared.exceptions import (
    ConflictException,
    NoFraudReportException,
    NoPaymentException,
    NotFoundException,
    ProviderException,
    ValidationException,
)

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@dataclass
class FakeBooking:
    mentor: SimpleNamespace
    student: SimpleNamespace
    id: UUID = field(default_factory=uuid4)
    mentor_id: UUID = field(default_factory=uuid4)
    student_id: UUID = field(default_factory=uuid4)
    status: BookingStatusEnum = BookingStatusEnum.COMPLETED
    total_price: int = 10000
    mentor_payout: int | None = 8500
    is_fraud_reported: bool = True
    stripe_payment_intent_id: str | None = "pi_1"
    payout_status: PayoutStatusEnum = PayoutStatusEnum.HELD
    payout_id: str | None = None
    payout_hold_until: datetime | None = None
    payout_released_at: datetime | None = None
    dispute_payout_amount: int | None = None
    transfer_reversed_at: datetime | None = None
    stripe_refund_id: str | None = None
    refund_amount: int | None = None
    admin_reviewed_at: datetime | None = None
    admin_reviewed_by: UUID | None = None
    admin_decision: DisputeDecisionEnum | None = None
    admin_notes: str | None = None


class FakeBookingRepository:
    def __init__(self, bookings: list[FakeBooking]) -> None:
        self.bookings = {booking.id: booking for booking in bookings}
        self.update_calls = 0

    async def get_booking_by_id(self, booking_id: UUID) -> FakeBooking | None:
        return self.bookings.get(booking_id)

    async def update_booking(self, booking: FakeBooking, **changes) -> FakeBooking:
        for key, value in changes.items():
            setattr(booking, key, value)
        self.update_calls += 1
        return booking


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict] = []

    async def create_audit_log(self, actor_id, action, entity_type, entity_id, payload) -> None:
        self.logs.append({"actor_id": actor_id, "action": action, "entity_id": entity_id, "payload": payload})


class FakeNotificationsService:
    def __init__(self) -> None:
        self.sent: list[tuple[UUID, NotificationKindEnum, str]] = []

    async def notify(self, user_id, kind, title, message, *, link=None, booking_id=None) -> None:
        self.sent.append((user_id, kind, message))


class FakeEmailSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_best_effort(self, template, to, variables) -> bool:
        self.sent.append((template, to))
        return True


class FakeProvider:
    def __init__(self, *, fail_refund: bool = False, fail_payout: bool = False) -> None:
        self.fail_refund = fail_refund
        self.fail_payout = fail_payout
        self.calls: list[tuple] = []

    async def reverse_transfer(self, transfer_reference, *, idempotency_key=None) -> None:
        self.calls.append(("reverse", transfer_reference, idempotency_key))

    async def issue_refund(self, payment_reference, amount_cents, reason_code, *, idempotency_key=None):
        if self.fail_refund:
            raise ProviderError("refund", "card declined")
        self.calls.append(("refund", amount_cents, reason_code, idempotency_key))
        return ProviderResult(id="re_1")

    async def create_payout(self, destination_account, amount_cents, booking_id, memo, *, idempotency_key=None):
        if self.fail_payout:
            raise ProviderError("transfer", "account restricted")
        self.calls.append(("payout", amount_cents, idempotency_key))
        return ProviderResult(id="tr_dispute")


def make_booking(**overrides) -> FakeBooking:
    mentor = SimpleNamespace(
        user_id=uuid4(),
        display_name="Ada Mentor",
        stripe_connect_id="acct_1",
        user=SimpleNamespace(email="mentor@example.com"),
    )
    student = SimpleNamespace(email="student@example.com", display_name="Sam Student")
    return FakeBooking(mentor=mentor, student=student, **overrides)


def make_service(
    booking: FakeBooking,
    provider: FakeProvider | None = None,
) -> tuple[DisputeService, FakeBookingRepository, FakeAuditRepository, FakeNotificationsService, FakeProvider]:
    provider = provider or FakeProvider()
    repo = FakeBookingRepository([booking])
    audit = FakeAuditRepository()
    notifications = FakeNotificationsService()
    service = DisputeService(
        booking_repository=repo,
        audit_repository=audit,
        notifications_service=notifications,
        provider=provider,
        email_sender=FakeEmailSender(),
    )
    return service, repo, audit, notifications, provider


ADMIN = SimpleNamespace(id=uuid4(), role=SimpleNamespace(name=RoleEnum.ADMIN))


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(dispute_service_module, "utc_now", lambda: FIXED_NOW)


@pytest.mark.parametrize(
    ("decision", "custom", "refund", "payout"),
    [
        (DisputeDecisionEnum.REFUND_STUDENT_FULL, None, 10000, 0),
        (DisputeDecisionEnum.REFUND_STUDENT_PARTIAL, 3000, 3000, 7000),
        (DisputeDecisionEnum.REFUND_STUDENT_PARTIAL, None, 5000, 5000),
        (DisputeDecisionEnum.PAYOUT_MENTOR_FULL, None, 0, 8500),
        (DisputeDecisionEnum.SPLIT_50_50, None, 5000, 5000),
        (DisputeDecisionEnum.UNDER_REVIEW, None, 0, 0),
        (DisputeDecisionEnum.NO_ACTION, None, 0, 0),
    ],
)
def test_resolution_amounts(decision: DisputeDecisionEnum, custom: int | None, refund: int, payout: int) -> None:
    resolution = compute_resolution(decision, 10000, 8500, custom)

    assert (resolution.refund_amount, resolution.payout_amount) == (refund, payout)


def test_odd_split_rounds_refund_half_up() -> None:
    resolution = compute_resolution(DisputeDecisionEnum.SPLIT_50_50, 9999, 8499)

    assert (resolution.refund_amount, resolution.payout_amount) == (5000, 4999)


@pytest.mark.parametrize("custom", [10001, 0])
def test_partial_refund_outside_total_is_rejected(custom: int) -> None:
    with pytest.raises(ValidationException):
        compute_resolution(DisputeDecisionEnum.REFUND_STUDENT_PARTIAL, 10000, 8500, custom)


@pytest.mark.asyncio
async def test_split_refunds_student_and_pays_mentor() -> None:
    booking = make_booking()
    service, repo, audit, notifications, provider = make_service(booking)

    outcome = await service.resolve(
        booking.id,
        DisputeResolveRequest(decision=DisputeDecisionEnum.SPLIT_50_50, admin_notes="both partly right"),
        ADMIN,
    )

    assert (outcome.refund_amount, outcome.payout_amount, outcome.payout_succeeded) == (5000, 5000, True)
    assert provider.calls == [
        ("refund", 5000, "requested_by_customer", f"refund:{booking.id}:SPLIT_50_50"),
        ("payout", 5000, f"payout:{booking.id}:dispute"),
    ]
    assert booking.status == BookingStatusEnum.COMPLETED
    assert booking.payout_status == PayoutStatusEnum.PAID_OUT
    assert booking.stripe_refund_id == "re_1"
    assert booking.dispute_payout_amount == 5000
    assert booking.admin_decision == DisputeDecisionEnum.SPLIT_50_50
    assert booking.admin_reviewed_by == ADMIN.id
    assert repo.update_calls == 1
    assert audit.logs[0]["action"] == "dispute.resolved"
    assert {item[1] for item in notifications.sent} == {NotificationKindEnum.DISPUTE_RESOLVED}
    assert len(notifications.sent) == 2


@pytest.mark.asyncio
async def test_partial_refund_uses_custom_amount() -> None:
    booking = make_booking()
    service, _, _, _, provider = make_service(booking)

    outcome = await service.resolve(
        booking.id,
        DisputeResolveRequest(decision=DisputeDecisionEnum.REFUND_STUDENT_PARTIAL, custom_refund_amount=3000),
        ADMIN,
    )

    assert (outcome.refund_amount, outcome.payout_amount) == (3000, 7000)
    assert booking.refund_amount == 3000
    assert ("payout", 7000, f"payout:{booking.id}:dispute") in provider.calls


@pytest.mark.asyncio
async def test_full_refund_reverses_prior_transfer() -> None:
    booking = make_booking(payout_status=PayoutStatusEnum.PAID_OUT, payout_id="tr_old")
    service, _, _, _, provider = make_service(booking)

    outcome = await service.resolve(
        booking.id,
        DisputeResolveRequest(decision=DisputeDecisionEnum.REFUND_STUDENT_FULL),
        ADMIN,
    )

    assert outcome.transfer_reversed is True
    assert provider.calls[0] == ("reverse", "tr_old", "reversal:tr_old")
    assert provider.calls[1] == ("refund", 10000, "fraudulent", f"refund:{booking.id}:REFUND_STUDENT_FULL")
    assert booking.status == BookingStatusEnum.REFUNDED
    assert booking.payout_status == PayoutStatusEnum.REFUNDED
    assert booking.transfer_reversed_at == FIXED_NOW


@pytest.mark.asyncio
async def test_refund_failure_aborts_without_saving() -> None:
    booking = make_booking()
    service, repo, audit, notifications, _ = make_service(booking, FakeProvider(fail_refund=True))

    with pytest.raises(ProviderException):
        await service.resolve(
            booking.id,
            DisputeResolveRequest(decision=DisputeDecisionEnum.SPLIT_50_50),
            ADMIN,
        )

    assert repo.update_calls == 0
    assert audit.logs == []
    assert notifications.sent == []
    assert booking.admin_decision is None


@pytest.mark.asyncio
async def test_payout_failure_keeps_payout_held_for_retry() -> None:
    booking = make_booking()
    service, _, _, _, _ = make_service(booking, FakeProvider(fail_payout=True))

    outcome = await service.resolve(
        booking.id,
        DisputeResolveRequest(decision=DisputeDecisionEnum.PAYOUT_MENTOR_FULL),
        ADMIN,
    )

    assert outcome.payout_succeeded is False
    assert booking.payout_status == PayoutStatusEnum.HELD
    assert booking.payout_hold_until == FIXED_NOW
    assert booking.dispute_payout_amount == 8500
    assert booking.admin_decision == DisputeDecisionEnum.PAYOUT_MENTOR_FULL


@pytest.mark.asyncio
async def test_under_review_keeps_dispute_open() -> None:
    booking = make_booking()
    service, _, _, _, provider = make_service(booking)

    await service.resolve(booking.id, DisputeResolveRequest(decision=DisputeDecisionEnum.UNDER_REVIEW), ADMIN)

    assert provider.calls == []
    assert booking.payout_status == PayoutStatusEnum.HELD
    assert booking.payout_hold_until is None

    await service.resolve(booking.id, DisputeResolveRequest(decision=DisputeDecisionEnum.NO_ACTION), ADMIN)

    assert booking.admin_decision == DisputeDecisionEnum.NO_ACTION
    assert booking.payout_hold_until == FIXED_NOW


@pytest.mark.asyncio
async def test_final_decision_cannot_be_applied_twice() -> None:
    booking = make_booking()
    service, _, _, _, _ = make_service(booking)
    payload = DisputeResolveRequest(decision=DisputeDecisionEnum.SPLIT_50_50)

    await service.resolve(booking.id, payload, ADMIN)

    with pytest.raises(ConflictException):
        await service.resolve(booking.id, payload, ADMIN)


@pytest.mark.asyncio
async def test_resolution_preconditions() -> None:
    unreported = make_booking(is_fraud_reported=False)
    unpaid = make_booking(stripe_payment_intent_id=None)
    service, repo, _, _, _ = make_service(unreported)
    repo.bookings[unpaid.id] = unpaid
    payload = DisputeResolveRequest(decision=DisputeDecisionEnum.SPLIT_50_50)

    with pytest.raises(NotFoundException):
        await service.resolve(uuid4(), payload, ADMIN)
    with pytest.raises(NoFraudReportException):
        await service.resolve(unreported.id, payload, ADMIN)
    with pytest.raises(NoPaymentException):
        await service.resolve(unpaid.id, payload, ADMIN)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("decision", "custom"),
    [
        (DisputeDecisionEnum.SPLIT_50_50, None),
        (DisputeDecisionEnum.REFUND_STUDENT_PARTIAL, 3000),
    ],
)
async def test_split_after_normal_payout_is_rejected_before_money_moves(
    decision: DisputeDecisionEnum,
    custom: int | None,
) -> None:
    booking = make_booking(
        admin_decision=DisputeDecisionEnum.NO_ACTION,
        payout_status=PayoutStatusEnum.PAID_OUT,
        payout_id="tr_normal",
    )
    service, repo, audit, _, provider = make_service(booking)

    with pytest.raises(ConflictException):
        await service.resolve(
            booking.id,
            DisputeResolveRequest(decision=decision, custom_refund_amount=custom),
            ADMIN,
        )

    assert provider.calls == []
    assert repo.update_calls == 0
    assert audit.logs == []
    assert booking.admin_decision == DisputeDecisionEnum.NO_ACTION


@pytest.mark.asyncio
async def test_payout_in_full_after_normal_payout_moves_no_money() -> None:
    booking = make_booking(
        admin_decision=DisputeDecisionEnum.NO_ACTION,
        payout_status=PayoutStatusEnum.PAID_OUT,
        payout_id="tr_normal",
    )
    service, _, _, _, provider = make_service(booking)

    outcome = await service.resolve(
        booking.id,
        DisputeResolveRequest(decision=DisputeDecisionEnum.PAYOUT_MENTOR_FULL),
        ADMIN,
    )

    assert provider.calls == []
    assert (outcome.refund_amount, outcome.payout_amount, outcome.payout_succeeded) == (0, 8500, True)
    assert booking.payout_id == "tr_normal"
    assert booking.admin_decision == DisputeDecisionEnum.PAYOUT_MENTOR_FULL
