"""Unit tests for confirmation mail and publish webhooks."""
from datetime import datetime, timezone

import httpx
import pytest

from felicity.config import Settings
from felicity.notifications import MERCH_COLOR, NORMAL_COLOR, Notifier

START = datetime(2026, 2, 14, 4, 30, tzinfo=timezone.utc)


@pytest.fixture
def notifier():
    return Notifier(Settings(SMTP_HOST="", DISPLAY_TIMEZONE="Asia/Kolkata"))


def confirmation(**overrides):
    data = {
        "to_email": "asha@students.iiit.ac.in",
        "participant_name": "Asha Rao",
        "event_name": "Robo Wars",
        "is_merchandise": False,
        "start_time": START,
        "ticket_id": "TICKET-1-ABCDEF",
        "qr_payload": "TICKET:TICKET-1-ABCDEF|EVENT:e|PARTICIPANT:p",
        "amount": 100,
    }
    data.update(overrides)
    return data


class TestConfirmationMail:
    def test_registration_mail(self, notifier):
        msg = notifier.build_confirmation(**confirmation())
        assert msg["Subject"] == "Registration Confirmed - Robo Wars"
        assert msg["To"] == "asha@students.iiit.ac.in"
        body = msg.get_content()
        assert "Ticket ID: TICKET-1-ABCDEF" in body
        # 04:30 UTC is 10:00 in Kolkata
        assert "10:00 AM IST" in body
        assert "Saturday, 14 February 2026" in body

    def test_order_mail(self, notifier):
        msg = notifier.build_confirmation(**confirmation(is_merchandise=True, variant_label="Hoodie M", quantity=2))
        assert msg["Subject"] == "Order Confirmed - Robo Wars"
        body = msg.get_content()
        assert "Order ID: TICKET-1-ABCDEF" in body
        assert "Variant: Hoodie M" in body
        assert "Quantity: 2" in body

    def test_missing_start_time(self, notifier):
        assert "Date: TBA" in notifier.build_confirmation(**confirmation(start_time=None)).get_content()

    def test_skipped_without_smtp(self, notifier):
        assert notifier.send_registration_confirmation(**confirmation()) is False

    def test_smtp_failure_is_swallowed(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no mail server")

        monkeypatch.setattr("felicity.notifications.smtplib.SMTP", refuse)
        notifier = Notifier(Settings(SMTP_HOST="smtp.invalid"))
        assert notifier.send_registration_confirmation(**confirmation()) is False


class TestPublishWebhook:
    EVENT = {
        "event_id": "evt-1",
        "name": "Robo Wars",
        "event_type": "normal",
        "description": "Build a bot",
        "eligibility": None,
        "registration_fee": 0,
        "start_time": START,
    }

    def test_payload(self, notifier):
        payload = notifier.build_webhook_payload("Robotics Club", self.EVENT)
        assert "Robotics Club" in payload["content"]
        embed = payload["embeds"][0]
        assert embed["title"] == "Robo Wars"
        assert embed["color"] == NORMAL_COLOR
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields == {"Type": "Normal Event", "Eligibility": "Open to All", "Fee": "Free", "Date": "14 February 2026"}

    def test_merchandise_colour(self, notifier):
        payload = notifier.build_webhook_payload("Club", {**self.EVENT, "event_type": "merchandise", "registration_fee": 500})
        embed = payload["embeds"][0]
        assert embed["color"] == MERCH_COLOR
        assert {"name": "Fee", "value": "Rs. 500", "inline": True} in embed["fields"]

    def test_posts_json(self, notifier, monkeypatch):
        calls = []

        def fake_post(url, json, timeout):
            calls.append((url, json, timeout))
            return httpx.Response(204, request=httpx.Request("POST", url))

        monkeypatch.setattr(httpx, "post", fake_post)
        assert notifier.post_publish_webhook(" https://hooks.example/abc ", "Robotics Club", self.EVENT) is True
        url, body, timeout = calls[0]
        assert url == "https://hooks.example/abc"
        assert body["embeds"][0]["title"] == "Robo Wars"
        assert timeout == 5.0

    def test_no_url_is_noop(self, notifier, monkeypatch):
        monkeypatch.setattr(httpx, "post", pytest.fail)
        assert notifier.post_publish_webhook(None, "Club", self.EVENT) is False
        assert notifier.post_publish_webhook("   ", "Club", self.EVENT) is False

    def test_failure_is_swallowed(self, notifier, monkeypatch):
        def unreachable(url, **kwargs):
            raise httpx.ConnectError("refused", request=httpx.Request("POST", url))

        monkeypatch.setattr(httpx, "post", unreachable)
        assert notifier.post_publish_webhook("https://hooks.example/abc", "Club", self.EVENT) is False

    def test_error_status_is_swallowed(self, notifier, monkeypatch):
        monkeypatch.setattr(httpx, "post", lambda url, **kw: httpx.Response(500, request=httpx.Request("POST", url)))
        assert notifier.post_publish_webhook("https://hooks.example/abc", "Club", self.EVENT) is False
