"""Tests for ticket scanning and the attendance summary."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from felicity.errors import AlreadyMarked
from felicity.models.account import Organizer
from felicity.models.event import Event
from felicity.models.registration import Registration
from felicity.services import attendance_service
from tests.conftest import create_event, create_organizer, create_participant, register


@pytest.fixture
def organizer(client, admin_id):
    return create_organizer(client, admin_id)


@pytest.fixture
def ticket(client, organizer):
    """A registered participant's ticket for an event owned by ``organizer``."""
    event = create_event(client, organizer["account_id"])
    p = create_participant(client)
    body = register(client, p["account_id"], event["event_id"]).json()
    return body


def parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def scan(client, organizer_id, ticket_id):
    return client.post(f"/api/registrations/attendance/mark?actor_id={organizer_id}", json={"ticketId": ticket_id})


class TestMarkAttendance:
    """A ticket is marked exactly once, by the organizer who owns the event."""

    def test_mark_once(self, client, organizer, ticket, db):
        resp = scan(client, organizer["account_id"], ticket["ticketId"])
        assert resp.status_code == 200
        body = resp.json()
        assert body["participant"] == {
            "name": "Asha Rao",
            "email": "p1@students.iiit.ac.in",
            "eventId": ticket["eventId"],
            "eventName": "Robo Wars",
            "ticketId": ticket["ticketId"],
        }
        assert parse_time(body["attendanceTime"])

        registration = db.query(Registration).filter(Registration.ticket_id == ticket["ticketId"]).one()
        assert registration.attended is True
        assert registration.attendance_timestamp >= registration.registered_at
        assert db.query(Event).filter(Event.event_id == ticket["eventId"]).one().attendance_count == 1

    def test_second_scan_reports_first(self, client, organizer, ticket, db):
        first = scan(client, organizer["account_id"], ticket["ticketId"]).json()
        resp = scan(client, organizer["account_id"], ticket["ticketId"])
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["error"] == "AlreadyMarked"
        assert detail["participantName"] == "Asha Rao"
        assert parse_time(detail["attendanceTime"]) == parse_time(first["attendanceTime"])
        assert db.query(Event).filter(Event.event_id == ticket["eventId"]).one().attendance_count == 1

    def test_scan_full_qr_payload(self, client, organizer, ticket):
        resp = scan(client, organizer["account_id"], ticket["qrPayload"])
        assert resp.status_code == 200
        assert resp.json()["participant"]["ticketId"] == ticket["ticketId"]

    def test_unknown_ticket(self, client, organizer, ticket):
        resp = scan(client, organizer["account_id"], "TICKET-0-NOPE00")
        assert resp.status_code == 404
        assert resp.json()["detail"]["error"] == "TicketNotFound"

    def test_other_organizer_not_authorized(self, client, admin_id, ticket, db):
        other = create_organizer(client, admin_id, name="Music Club")
        resp = scan(client, other["account_id"], ticket["ticketId"])
        assert resp.status_code == 403
        assert resp.json()["detail"]["error"] == "NotAuthorized"
        assert db.query(Registration).filter(Registration.ticket_id == ticket["ticketId"]).one().attended is False

    def test_participants_cannot_scan(self, client, ticket):
        p = create_participant(client, email="p2@students.iiit.ac.in")
        assert scan(client, p["account_id"], ticket["ticketId"]).status_code == 403

    def test_blank_ticket_rejected(self, client, organizer):
        assert scan(client, organizer["account_id"], "").status_code == 422

    def test_concurrent_scans_mark_once(self, client, organizer, ticket, database, db):
        def attempt(_):
            with database.session() as session:
                owner = session.get(Organizer, organizer["account_id"])
                try:
                    attendance_service.mark_attendance(session, ticket["ticketId"], owner)
                except AlreadyMarked:
                    return "duplicate"
                return "ok"

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(attempt, range(4)))

        assert results.count("ok") == 1
        assert results.count("duplicate") == 3
        assert db.query(Event).filter(Event.event_id == ticket["eventId"]).one().attendance_count == 1


class TestAttendanceSummary:
    def test_counts(self, client, organizer, ticket):
        p2 = create_participant(client, email="p2@students.iiit.ac.in")
        register(client, p2["account_id"], ticket["eventId"])
        scan(client, organizer["account_id"], ticket["ticketId"])

        resp = client.get(f"/api/events/{ticket['eventId']}/attendance?actor_id={organizer['account_id']}")
        assert resp.json() == {"event_id": ticket["eventId"], "registered": 2, "attended": 1, "not_attended": 1}

    def test_admin_may_view(self, client, admin_id, ticket):
        resp = client.get(f"/api/events/{ticket['eventId']}/attendance?actor_id={admin_id}")
        assert resp.status_code == 200

    def test_other_organizer_forbidden(self, client, admin_id, ticket):
        other = create_organizer(client, admin_id, name="Music Club")
        resp = client.get(f"/api/events/{ticket['eventId']}/attendance?actor_id={other['account_id']}")
        assert resp.status_code == 403
