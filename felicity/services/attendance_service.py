"""Attendance marking for scanned or typed-in tickets."""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from felicity.errors import AlreadyMarked, NotAuthorized, TicketNotFound
from felicity.models.account import Account, Admin, Organizer
from felicity.models.event import Event
from felicity.models.registration import Registration
from felicity.models.types import utcnow
from felicity.services.registration_service import get_event_or_404
from felicity.tickets import ticket_from_scan

logger = logging.getLogger(__name__)


def _already_marked(registration: Registration) -> AlreadyMarked:
    stamp = registration.attendance_timestamp
    return AlreadyMarked(
        participantName=registration.participant.display_name,
        attendanceTime=stamp.isoformat() if stamp else None,
    )


def mark_attendance(db: Session, raw_ticket: str, organizer: Organizer, now: Optional[datetime] = None) -> dict[str, Any]:
    """Flip a registration to attended exactly once.

    ``raw_ticket`` is either a full QR payload or a bare ticket id.
    """
    ticket_id = ticket_from_scan(raw_ticket)
    registration = db.query(Registration).filter(Registration.ticket_id == ticket_id).first()
    if not registration:
        raise TicketNotFound()

    event = registration.event
    if event.organizer_id != organizer.account_id:
        raise NotAuthorized()
    if registration.attended:
        raise _already_marked(registration)

    # Never earlier than the registration itself
    stamp = max(now or utcnow(), registration.registered_at)
    result = db.execute(
        update(Registration)
        .where(Registration.registration_id == registration.registration_id, Registration.attended.is_(False))
        .values(attended=True, attendance_timestamp=stamp)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        db.refresh(registration)
        raise _already_marked(registration)

    db.execute(
        update(Event)
        .where(Event.event_id == event.event_id)
        .values(attendance_count=Event.attendance_count + 1)
        .execution_options(synchronize_session=False)
    )
    participant = registration.participant
    marked = {
        "participant": {
            "name": participant.display_name,
            "email": participant.email,
            "event_id": event.event_id,
            "event_name": event.name,
            "ticket_id": registration.ticket_id,
        },
        "attendance_time": stamp,
    }
    db.commit()
    logger.info("Marked attendance for ticket %s at event %s", ticket_id, event.event_id)
    return marked


def attendance_summary(db: Session, event_id: str, viewer: Account) -> dict[str, Any]:
    event = get_event_or_404(db, event_id)
    if not isinstance(viewer, Admin) and event.organizer_id != viewer.account_id:
        raise NotAuthorized()

    registered = db.query(func.count(Registration.registration_id)).filter(Registration.event_id == event_id).scalar()
    attended = (
        db.query(func.count(Registration.registration_id))
        .filter(Registration.event_id == event_id, Registration.attended.is_(True))
        .scalar()
    )
    return {"event_id": event_id, "registered": registered, "attended": attended, "not_attended": registered - attended}
