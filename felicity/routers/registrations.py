"""Registration and attendance routes.

``POST /`` and ``POST /attendance/mark`` are the contracts the ticketing and
scanner clients rely on; both speak camelCase.
"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from felicity.database import get_db
from felicity.dependencies import get_notifier, require_organizer, require_participant
from felicity.models.account import Organizer, Participant
from felicity.notifications import Notifier
from felicity.schemas.registration import (
    AttendanceMark,
    AttendanceMarked,
    RegistrationCheck,
    RegistrationCreate,
    RegistrationCreated,
    RegistrationOut,
)
from felicity.services import attendance_service, registration_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=RegistrationCreated, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegistrationCreate,
    background_tasks: BackgroundTasks,
    participant: Participant = Depends(require_participant),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Register for an event or place a merchandise order.

    The confirmation mail goes out after the response; a mail failure never
    affects the registration.
    """
    registration, confirmation = registration_service.attempt_register(
        db,
        payload.event_id,
        participant,
        form_data=payload.form_data,
        variant=payload.variant.model_dump() if payload.variant else None,
        quantity=payload.quantity,
    )
    background_tasks.add_task(notifier.send_registration_confirmation, **confirmation)
    return RegistrationCreated(
        ticket_id=registration.ticket_id,
        registration_id=registration.registration_id,
        event_id=registration.event_id,
        status=registration.status.value,
        payment_status=registration.payment_status.value,
        amount_paid=registration.amount_paid,
        qr_payload=confirmation["qr_payload"],
    )


@router.post("/attendance/mark", response_model=AttendanceMarked)
def mark_attendance(
    payload: AttendanceMark,
    organizer: Organizer = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """Mark a scanned (or typed-in) ticket as attended. Succeeds once per ticket."""
    return attendance_service.mark_attendance(db, payload.ticket_id, organizer)


@router.get("/mine", response_model=list[RegistrationOut])
def my_registrations(participant: Participant = Depends(require_participant), db: Session = Depends(get_db)):
    return registration_service.my_registrations(db, participant)


@router.get("/check/{event_id}", response_model=RegistrationCheck)
def check_registration(
    event_id: str,
    participant: Participant = Depends(require_participant),
    db: Session = Depends(get_db),
):
    registration = registration_service.check_registration(db, event_id, participant)
    return RegistrationCheck(
        is_registered=registration is not None,
        registration=RegistrationOut.model_validate(registration) if registration else None,
    )
