"""Transactional email delivery over the provider HTTP API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider."""


@dataclass(frozen=True, slots=True)
class EmailTemplate:
    subject: str
    body: str


TEMPLATES: dict[str, EmailTemplate] = {
    "session_reminder_24h": EmailTemplate(
        subject="Reminder: your session with {counterpart_name} is tomorrow",
        body=(
            "Hi {recipient_name},\n\n"
            "Your {duration_minutes}-minute session with {counterpart_name} starts at {scheduled_at} UTC.\n"
            "Details: {link}\n"
        ),
    ),
    "session_reminder_15min": EmailTemplate(
        subject="Your session with {counterpart_name} starts in 15 minutes",
        body=(
            "Hi {recipient_name},\n\n"
            "Your session with {counterpart_name} starts at {scheduled_at} UTC.\n"
            "Join here: {link}\n"
        ),
    ),
    "completion_reminder": EmailTemplate(
        subject="Please mark your session with {counterpart_name} as complete",
        body=(
            "Hi {recipient_name},\n\n"
            "Your session with {counterpart_name} has ended. Mark it complete so the student can "
            "confirm and your payout can be processed.\n"
            "Booking: {link}\n"
        ),
    ),
    "review_reminder": EmailTemplate(
        subject="How was your experience with {mentor_name}?",
        body=(
            "Hi {recipient_name},\n\n"
            "Leave a short review for {mentor_name} to help other students.\n"
            "Review: {link}\n"
        ),
    ),
    "dispute_resolved": EmailTemplate(
        subject="Your dispute has been resolved",
        body=(
            "Hi {recipient_name},\n\n"
            "{message}\n"
            "Booking: {link}\n"
        ),
    ),
}


def render_template(template_name: str, variables: dict[str, Any]) -> EmailTemplate:
    """Fill a named template; unknown names raise KeyError."""
    template = TEMPLATES[template_name]
    return EmailTemplate(
        subject=template.subject.format(**variables),
        body=template.body.format(**variables),
    )


class EmailSender:
    """Send plain-text emails through a Resend-compatible API."""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str | None,
        sender: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, template_name: str, recipient: str, variables: dict[str, Any]) -> None:
        if not self.api_key:
            raise EmailDeliveryError("Email API key is not configured")

        try:
            rendered = render_template(template_name, variables)
        except (KeyError, IndexError) as exc:
            raise EmailDeliveryError(f"Cannot render template {template_name!r}: {exc}") from exc

        payload = {
            "from": self.sender,
            "to": [recipient],
            "subject": rendered.subject,
            "text": rendered.body,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email delivery to {recipient} failed: {exc}") from exc

        logger.info("Email %s sent to %s", template_name, recipient)

    async def send_best_effort(self, template_name: str, recipient: str, variables: dict[str, Any]) -> bool:
        """Send and log instead of raising."""
        try:
            await self.send(template_name, recipient, variables)
        except EmailDeliveryError as exc:
            logger.warning("Best-effort email %s not delivered: %s", template_name, exc)
            return False
        return True


@lru_cache
def get_email_sender() -> EmailSender:
    settings = get_settings()
    return EmailSender(
        api_url=settings.email_api_url,
        api_key=settings.email_api_key,
        sender=settings.email_from,
        timeout_seconds=settings.email_timeout_seconds,
    )
