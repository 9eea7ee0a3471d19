"""Event API routes: delegates to event_service for invariant enforcement."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from felicity.database import get_db
from felicity.dependencies import get_actor, get_notifier, get_optional_actor, require_organizer
from felicity.models.account import Account, Organizer
from felicity.models.event import EventStatus
from felicity.notifications import Notifier
from felicity.schemas.event import AttendanceSummary, EventCreate, EventOut, EventUpdate, StatusChange
from felicity.schemas.registration import RegistrationOut
from felicity.services import attendance_service, event_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _with_score(event, **scores) -> EventOut:
    return EventOut.model_validate(event).model_copy(update=scores)


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    background_tasks: BackgroundTasks,
    organizer: Organizer = Depends(require_organizer),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Create a draft (or directly published) event."""
    data = payload.model_dump(exclude={"custom_form", "variants"})
    data["custom_form"] = [f.model_dump(mode="json") for f in payload.custom_form]
    data["variants"] = [v.model_dump() for v in payload.variants]
    event = event_service.create_event(db, organizer, data)
    if event.status == EventStatus.published:
        background_tasks.add_task(
            notifier.post_publish_webhook,
            organizer.webhook_url,
            organizer.organizer_name,
            event_service.event_snapshot(event),
        )
    return event


@router.get("/", response_model=list[EventOut])
def list_events(
    search: Optional[str] = Query(None),
    event_type: Optional[str] = Query(None),
    eligibility: Optional[str] = Query(None),
    start_after: Optional[datetime] = Query(None),
    start_before: Optional[datetime] = Query(None),
    organizer_id: Optional[str] = Query(None),
    viewer: Optional[Account] = Depends(get_optional_actor),
    db: Session = Depends(get_db),
):
    """Browse events; participants get them ranked by interests and follows."""
    results = event_service.list_events(
        db,
        viewer=viewer,
        search=search,
        event_type=event_type,
        eligibility=eligibility,
        start_after=start_after,
        start_before=start_before,
        organizer_id=organizer_id,
    )
    return [_with_score(event, recommendation_score=score) for event, score in results]


@router.get("/trending", response_model=list[EventOut])
def trending(db: Session = Depends(get_db)):
    """Top 5 events by registrations in the last 24 hours."""
    return [_with_score(event, trending_score=count) for event, count in event_service.trending_events(db)]


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, viewer: Optional[Account] = Depends(get_optional_actor), db: Session = Depends(get_db)):
    return event_service.get_event(db, event_id, viewer)


@router.patch("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    organizer: Organizer = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """Edit an event (owner only; locked once registrations exist)."""
    updates = payload.model_dump(exclude_unset=True, exclude={"custom_form"})
    if "custom_form" in payload.model_fields_set:
        updates["custom_form"] = (
            [f.model_dump(mode="json") for f in payload.custom_form] if payload.custom_form is not None else None
        )
    return event_service.update_event(db, event_id, organizer, updates)


@router.patch("/{event_id}/status", response_model=EventOut)
def change_status(
    event_id: str,
    payload: StatusChange,
    background_tasks: BackgroundTasks,
    organizer: Organizer = Depends(require_organizer),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Move the event along draft → published → ongoing → completed (or published → closed)."""
    event = event_service.transition_status(db, event_id, organizer, payload.status)
    if event.status == EventStatus.published:
        background_tasks.add_task(
            notifier.post_publish_webhook,
            organizer.webhook_url,
            organizer.organizer_name,
            event_service.event_snapshot(event),
        )
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(event_id: str, actor: Account = Depends(get_actor), db: Session = Depends(get_db)):
    """Delete a draft event (owner or admin)."""
    event_service.delete_event(db, event_id, actor)


@router.get("/{event_id}/registrations", response_model=list[RegistrationOut])
def list_registrations(event_id: str, actor: Account = Depends(get_actor), db: Session = Depends(get_db)):
    """All registrations for an event (organizer owner or admin), for exports and dashboards."""
    return event_service.list_event_registrations(db, event_id, actor)


@router.get("/{event_id}/attendance", response_model=AttendanceSummary)
def attendance_summary(event_id: str, actor: Account = Depends(get_actor), db: Session = Depends(get_db)):
    return attendance_service.attendance_summary(db, event_id, actor)
