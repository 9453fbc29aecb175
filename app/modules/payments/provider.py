"""Payment provider adapter (Stripe Connect)."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Protocol
from uuid import UUID

import stripe

from app.core.config import get_settings
from app.core.metrics import PAYMENT_PROVIDER_CALLS_TOTAL

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Payment provider rejected or failed an operation."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


@dataclass(slots=True)
class ProviderResult:
    id: str


@dataclass(slots=True)
class AccountCapability:
    charges_enabled: bool
    payouts_enabled: bool


@dataclass(slots=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(slots=True)
class WebhookEvent:
    type: str
    data: dict[str, Any] = field(default_factory=dict)


class PaymentProvider(Protocol):
    """Narrow contract the booking core needs from the payment provider."""

    async def issue_refund(
        self,
        payment_reference: str,
        amount_cents: int,
        reason_code: str,
        *,
        idempotency_key: str | None = None,
    ) -> ProviderResult:
        """Refund part or all of a captured payment."""

    async def create_payout(
        self,
        destination_account: str,
        amount_cents: int,
        booking_id: UUID,
        memo: str,
        *,
        idempotency_key: str | None = None,
    ) -> ProviderResult:
        """Transfer funds to a mentor's connected account."""

    async def reverse_transfer(
        self,
        transfer_reference: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        """Pull a previous transfer back to the platform balance."""

    async def check_account_capability(self, account_reference: str) -> AccountCapability:
        """Return whether a connected account can take charges and receive payouts."""

    async def create_checkout_session(
        self,
        *,
        booking_id: UUID,
        amount_cents: int,
        description: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Start hosted checkout for a booking."""

    def parse_webhook_event(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Verify webhook signature and return the event."""


class StripePaymentProvider:
    """Stripe implementation; SDK calls run in worker threads."""

    def __init__(
        self,
        *,
        api_key: str | None,
        currency: str = "usd",
        webhook_secret: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.currency = currency
        self.webhook_secret = webhook_secret

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if not self.api_key:
            PAYMENT_PROVIDER_CALLS_TOTAL.labels(operation=operation, outcome="not_configured").inc()
            raise ProviderError(operation, "Payment provider is not configured")
        try:
            result = await asyncio.to_thread(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as exc:
            PAYMENT_PROVIDER_CALLS_TOTAL.labels(operation=operation, outcome="error").inc()
            logger.error("Stripe %s failed: %s", operation, exc)
            raise ProviderError(operation, str(exc.user_message or exc)) from exc
        PAYMENT_PROVIDER_CALLS_TOTAL.labels(operation=operation, outcome="success").inc()
        return result

    async def issue_refund(
        self,
        payment_reference: str,
        amount_cents: int,
        reason_code: str,
        *,
        idempotency_key: str | None = None,
    ) -> ProviderResult:
        refund = await self._call(
            "refund",
            stripe.Refund.create,
            payment_intent=payment_reference,
            amount=amount_cents,
            reason=reason_code,
            idempotency_key=idempotency_key,
        )
        return ProviderResult(id=refund.id)

    async def create_payout(
        self,
        destination_account: str,
        amount_cents: int,
        booking_id: UUID,
        memo: str,
        *,
        idempotency_key: str | None = None,
    ) -> ProviderResult:
        transfer = await self._call(
            "transfer",
            stripe.Transfer.create,
            amount=amount_cents,
            currency=self.currency,
            destination=destination_account,
            description=memo,
            transfer_group=f"booking:{booking_id}",
            metadata={"booking_id": str(booking_id)},
            idempotency_key=idempotency_key,
        )
        return ProviderResult(id=transfer.id)

    async def reverse_transfer(
        self,
        transfer_reference: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        await self._call(
            "transfer_reversal",
            stripe.Transfer.create_reversal,
            transfer_reference,
            idempotency_key=idempotency_key,
        )

    async def check_account_capability(self, account_reference: str) -> AccountCapability:
        account = await self._call("account_retrieve", stripe.Account.retrieve, account_reference)
        return AccountCapability(
            charges_enabled=bool(getattr(account, "charges_enabled", False)),
            payouts_enabled=bool(getattr(account, "payouts_enabled", False)),
        )

    async def create_checkout_session(
        self,
        *,
        booking_id: UUID,
        amount_cents: int,
        description: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        session = await self._call(
            "checkout_session",
            stripe.checkout.Session.create,
            mode="payment",
            customer_email=customer_email,
            line_items=[
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": amount_cents,
                        "product_data": {"name": description},
                    },
                },
            ],
            metadata={"booking_id": str(booking_id)},
            payment_intent_data={"metadata": {"booking_id": str(booking_id)}},
            success_url=success_url,
            cancel_url=cancel_url,
            idempotency_key=f"checkout:{booking_id}:{amount_cents}",
        )
        return CheckoutSession(id=session.id, url=session.url)

    def parse_webhook_event(self, payload: bytes, signature: str | None) -> WebhookEvent:
        if not self.webhook_secret:
            raise ProviderError("webhook", "Webhook secret is not configured")
        if not signature:
            raise ProviderError("webhook", "Missing signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise ProviderError("webhook", "Invalid webhook payload or signature") from exc
        body = json.loads(payload)
        return WebhookEvent(type=body["type"], data=body["data"]["object"])


@lru_cache
def get_payment_provider() -> PaymentProvider:
    """Return provider configured from settings."""
    settings = get_settings()
    return StripePaymentProvider(
        api_key=settings.stripe_secret_key,
        currency=settings.stripe_currency,
        webhook_secret=settings.stripe_webhook_secret,
    )
