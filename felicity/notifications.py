"""Outbound side effects: confirmation mail and organizer webhooks.

Both run as background tasks after the response has been sent. They are best
effort: failures are logged and swallowed so they can never undo or delay a
registration or a status change.
"""
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Any, Optional

import httpx
import pytz

from felicity.config import Settings

logger = logging.getLogger(__name__)

NORMAL_COLOR = 0x6B9BC3
MERCH_COLOR = 0xE8C17C


class Notifier:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.tz = pytz.timezone(settings.DISPLAY_TIMEZONE)

    def _local(self, value: Optional[datetime], fmt: str) -> str:
        if value is None:
            return "TBA"
        return value.astimezone(self.tz).strftime(fmt)

    def build_confirmation(
        self,
        to_email: str,
        participant_name: str,
        event_name: str,
        is_merchandise: bool,
        start_time: Optional[datetime],
        ticket_id: str,
        qr_payload: str,
        amount: int,
        variant_label: Optional[str] = None,
        quantity: int = 1,
    ) -> EmailMessage:
        noun = "Order" if is_merchandise else "Registration"
        lines = [
            f"Dear {participant_name or 'Participant'},",
            "",
            f"Your {noun.lower()} for {event_name} has been confirmed!",
            "",
            "Event Details:",
            f"- Event: {event_name}",
            f"- Date: {self._local(start_time, '%A, %d %B %Y')}",
            f"- Time: {self._local(start_time, '%I:%M %p %Z')}",
            "",
            f"Your {'Order' if is_merchandise else 'Ticket'} Details:",
            f"- {'Order' if is_merchandise else 'Ticket'} ID: {ticket_id}",
            f"- Total Price: Rs. {amount}",
        ]
        if is_merchandise and variant_label:
            lines += [f"- Variant: {variant_label}", f"- Quantity: {quantity}"]
        lines += [
            "",
            f"QR code data: {qr_payload}",
            "Show the QR code " + ("to collect your merchandise." if is_merchandise else "at the event entrance."),
            "",
            "Best regards,",
            "Felicity Event Management Team",
        ]

        msg = EmailMessage()
        msg["Subject"] = f"{noun} Confirmed - {event_name}"
        msg["From"] = self.settings.MAIL_FROM
        msg["To"] = to_email
        msg.set_content("\n".join(lines))
        return msg

    def send_registration_confirmation(self, **confirmation: Any) -> bool:
        """Mail the ticket to the participant; returns whether it was handed to SMTP."""
        if not self.settings.SMTP_HOST:
            logger.info("SMTP not configured; skipping confirmation for ticket %s", confirmation.get("ticket_id"))
            return False
        try:
            msg = self.build_confirmation(**confirmation)
            with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as smtp:
                if self.settings.SMTP_USERNAME:
                    smtp.starttls()
                    smtp.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Confirmation email for ticket %s failed", confirmation.get("ticket_id"))
            return False
        logger.info("Sent confirmation for ticket %s to %s", confirmation["ticket_id"], confirmation["to_email"])
        return True

    def build_webhook_payload(self, organizer_name: str, event: dict[str, Any]) -> dict[str, Any]:
        is_normal = event["event_type"] == "normal"
        fee = event.get("registration_fee") or 0
        return {
            "content": f"A new event has been published by **{organizer_name or 'Organizer'}**!",
            "embeds": [{
                "title": event.get("name") or "New Event",
                "description": (event.get("description") or "No description")[:2048],
                "color": NORMAL_COLOR if is_normal else MERCH_COLOR,
                "fields": [
                    {"name": "Type", "value": "Normal Event" if is_normal else "Merchandise", "inline": True},
                    {"name": "Eligibility", "value": event.get("eligibility") or "Open to All", "inline": True},
                    {"name": "Fee", "value": f"Rs. {fee}" if fee else "Free", "inline": True},
                    {"name": "Date", "value": self._local(event.get("start_time"), "%d %B %Y"), "inline": True},
                ],
                "footer": {"text": "Felicity Events"},
            }],
        }

    def post_publish_webhook(self, webhook_url: Optional[str], organizer_name: str, event: dict[str, Any]) -> bool:
        if not webhook_url or not webhook_url.strip():
            return False
        payload = self.build_webhook_payload(organizer_name, event)
        try:
            resp = httpx.post(webhook_url.strip(), json=payload, timeout=self.settings.WEBHOOK_TIMEOUT_SECONDS)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Webhook for event %s failed (non-fatal): %s", event.get("event_id"), exc)
            return False
        logger.info("Posted publish webhook for event %s", event.get("event_id"))
        return True
