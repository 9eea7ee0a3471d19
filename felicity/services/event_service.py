"""Core event service: lifecycle, editing rules and discovery.

Responsibilities:
- Authorization: only the owning organizer may edit, publish or close
- Completeness checks before an event becomes visible
- Edit lock once registrations exist (form locked in every status)
- Status machine applied through a conditional UPDATE on the current status
- Listing with visibility rules, interest/follow ranking and trending
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from felicity.errors import EventNotEditable, FormLocked, InvalidStatusTransition, NotAuthorized
from felicity.models.account import Account, Admin, Organizer, Participant
from felicity.models.event import Event, EventStatus, EventType, FieldType, MerchandiseVariant
from felicity.models.registration import Registration
from felicity.models.types import utcnow
from felicity.services.registration_service import get_event_or_404

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.draft: {EventStatus.published},
    EventStatus.published: {EventStatus.ongoing, EventStatus.closed},
    EventStatus.ongoing: {EventStatus.completed},
}

EDITABLE_FIELDS = {
    "name", "description", "eligibility", "registration_deadline", "start_time", "end_time",
    "registration_limit", "registration_fee", "purchase_limit", "tags", "custom_form", "variants",
}
NON_NULLABLE_FIELDS = {"name", "registration_limit", "registration_fee", "tags", "custom_form", "variants"}

TAG_MATCH_WEIGHT = 2
FOLLOWED_ORGANIZER_BONUS = 5
TRENDING_WINDOW = timedelta(hours=24)
TRENDING_LIMIT = 5


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def event_snapshot(event: Event) -> dict[str, Any]:
    """Serialize an event to a JSON-safe dict for the publish webhook."""
    return {
        "event_id": event.event_id,
        "name": event.name,
        "description": event.description,
        "event_type": event.event_type.value,
        "eligibility": event.eligibility,
        "registration_fee": event.registration_fee,
        "start_time": event.start_time,
    }


def _check_owner(event: Event, organizer: Account) -> None:
    if event.organizer_id != organizer.account_id:
        raise NotAuthorized("Only the organizer may modify this event")


def validate_form_definition(custom_form: list[dict[str, Any]]) -> None:
    labels = [f["label"].strip() for f in custom_form]
    if len(labels) != len(set(labels)):
        raise HTTPException(status_code=400, detail="Form field labels must be unique")
    for f in custom_form:
        if f["field_type"] == FieldType.dropdown.value and not f.get("options"):
            raise HTTPException(status_code=400, detail=f"Dropdown field '{f['label']}' needs options")


def check_publishable(fields: dict[str, Any]) -> None:
    """Description, eligibility and all three dates; normal events need deadline < start < end."""
    missing = [
        name for name in ("description", "eligibility", "registration_deadline", "start_time", "end_time")
        if not fields.get(name)
    ]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot publish: missing required fields: {', '.join(missing)}",
        )
    deadline, start, end = fields["registration_deadline"], fields["start_time"], fields["end_time"]
    if start >= end:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    if fields.get("event_type") == EventType.normal.value and deadline >= start:
        raise HTTPException(status_code=400, detail="Registration deadline must be before the start time")


def _publish_fields(event: Event) -> dict[str, Any]:
    return {
        "description": event.description,
        "eligibility": event.eligibility,
        "registration_deadline": event.registration_deadline,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "event_type": event.event_type.value,
    }


def _replace_variants(db: Session, event: Event, variants: list[dict[str, Any]]) -> None:
    keys = [(v["product_name"], v.get("size") or "") for v in variants]
    if len(keys) != len(set(keys)):
        raise HTTPException(status_code=400, detail="Duplicate product/size variant")
    if event.variants:
        # Old rows go first so a re-used product/size does not trip the unique constraint
        event.variants.clear()
        db.flush()
    event.variants = [
        MerchandiseVariant(product_name=v["product_name"], size=v.get("size") or "", stock=v["stock"])
        for v in variants
    ]


def create_event(db: Session, organizer: Organizer, data: dict[str, Any]) -> Event:
    """Create an event in draft (or published, if complete)."""
    try:
        event_type = EventType(data.get("event_type") or "normal")
        requested = EventStatus(data.get("status") or "draft")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if requested not in (EventStatus.draft, EventStatus.published):
        raise HTTPException(status_code=400, detail="New events start as draft or published")

    for key in ("registration_deadline", "start_time", "end_time"):
        data[key] = _aware(data.get(key))
    custom_form = data.get("custom_form") or []
    validate_form_definition(custom_form)
    if requested == EventStatus.published:
        check_publishable({**data, "event_type": event_type.value})

    event = Event(
        organizer_id=organizer.account_id,
        name=data["name"].strip(),
        description=data.get("description"),
        event_type=event_type,
        status=requested,
        eligibility=data.get("eligibility"),
        registration_deadline=data["registration_deadline"],
        start_time=data["start_time"],
        end_time=data["end_time"],
        registration_limit=data.get("registration_limit") or 100,
        registration_fee=data.get("registration_fee") or 0,
        purchase_limit=data.get("purchase_limit") if event_type == EventType.merchandise else None,
        tags=list(data.get("tags") or []),
        custom_form=custom_form if event_type == EventType.normal else [],
    )
    if event_type == EventType.merchandise:
        _replace_variants(db, event, data.get("variants") or [])
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created %s event '%s' (%s) by organizer %s", event_type.value, event.name, event.event_id, organizer.account_id)
    return event


def update_event(db: Session, event_id: str, organizer: Organizer, updates: dict[str, Any]) -> Event:
    """Apply a partial edit; locked once the event has registrations."""
    event = get_event_or_404(db, event_id)
    _check_owner(event, organizer)

    unknown = sorted(set(updates) - EDITABLE_FIELDS)
    if unknown:
        raise HTTPException(status_code=400, detail=f"Fields not editable: {', '.join(unknown)}")
    cleared = sorted(f for f in NON_NULLABLE_FIELDS if f in updates and updates[f] is None)
    if cleared:
        raise HTTPException(status_code=400, detail=f"Fields cannot be empty: {', '.join(cleared)}")
    if "custom_form" in updates and event.registration_count > 0:
        raise FormLocked()
    if event.status != EventStatus.draft and event.registration_count > 0:
        raise EventNotEditable()

    if "custom_form" in updates:
        if event.is_merchandise:
            raise HTTPException(status_code=400, detail="Merchandise events have no registration form")
        validate_form_definition(updates["custom_form"])
    if "variants" in updates:
        if not event.is_merchandise:
            raise HTTPException(status_code=400, detail="Only merchandise events have variants")
        _replace_variants(db, event, updates.pop("variants"))

    for field, value in updates.items():
        if field in ("registration_deadline", "start_time", "end_time"):
            value = _aware(value)
        setattr(event, field, value)

    if event.status != EventStatus.draft:
        check_publishable(_publish_fields(event))

    db.commit()
    db.refresh(event)
    logger.info("Updated event %s (%s)", event_id, ", ".join(sorted(updates)) or "variants")
    return event


def transition_status(db: Session, event_id: str, organizer: Organizer, requested: str) -> Event:
    """Move an event along the lifecycle; only the listed edges are legal."""
    event = get_event_or_404(db, event_id)
    _check_owner(event, organizer)

    current = event.status
    try:
        target = EventStatus(requested)
    except ValueError:
        raise InvalidStatusTransition(current.value, requested)
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransition(current.value, target.value)
    if target == EventStatus.published:
        check_publishable(_publish_fields(event))

    result = db.execute(
        update(Event)
        .where(Event.event_id == event_id, Event.status == current)
        .values(status=target, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        db.refresh(event)
        raise InvalidStatusTransition(event.status.value, target.value)
    db.commit()
    db.refresh(event)
    logger.info("Event %s moved %s -> %s", event_id, current.value, target.value)
    return event


def delete_event(db: Session, event_id: str, actor: Account) -> None:
    event = get_event_or_404(db, event_id)
    if not isinstance(actor, Admin):
        _check_owner(event, actor)
    if event.status != EventStatus.draft:
        raise HTTPException(status_code=400, detail="Only draft events can be deleted")
    db.delete(event)
    db.commit()
    logger.info("Deleted draft event %s by %s", event_id, actor.account_id)


def _can_see_unpublished(event: Event, viewer: Optional[Account]) -> bool:
    return isinstance(viewer, Admin) or (viewer is not None and viewer.account_id == event.organizer_id)


def get_event(db: Session, event_id: str, viewer: Optional[Account] = None) -> Event:
    event = get_event_or_404(db, event_id)
    if event.status == EventStatus.draft and not _can_see_unpublished(event, viewer):
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def recommendation_score(event: Event, participant: Participant) -> int:
    interests = {i.lower() for i in participant.interests or []}
    matches = sum(1 for tag in event.tags or [] if tag.lower() in interests)
    score = TAG_MATCH_WEIGHT * matches
    if event.organizer_id in participant.followed_organizer_ids:
        score += FOLLOWED_ORGANIZER_BONUS
    return score


def _start_key(event: Event) -> datetime:
    return event.start_time or datetime.max.replace(tzinfo=timezone.utc)


def list_events(
    db: Session,
    viewer: Optional[Account] = None,
    search: Optional[str] = None,
    event_type: Optional[str] = None,
    eligibility: Optional[str] = None,
    start_after: Optional[datetime] = None,
    start_before: Optional[datetime] = None,
    organizer_id: Optional[str] = None,
) -> list[tuple[Event, Optional[int]]]:
    """Events visible to the viewer, each paired with its recommendation score (participants only)."""
    query = db.query(Event)
    if isinstance(viewer, Organizer):
        query = query.filter(or_(Event.status == EventStatus.published, Event.organizer_id == viewer.account_id))
    elif not isinstance(viewer, Admin):
        query = query.filter(Event.status == EventStatus.published)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Event.name.ilike(pattern), Event.description.ilike(pattern)))
    if event_type:
        try:
            query = query.filter(Event.event_type == EventType(event_type))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid event type: {event_type}")
    if eligibility:
        query = query.filter(Event.eligibility.ilike(f"%{eligibility.strip()}%"))
    if start_after:
        query = query.filter(Event.start_time >= _aware(start_after))
    if start_before:
        query = query.filter(Event.start_time <= _aware(start_before))
    if organizer_id:
        query = query.filter(Event.organizer_id == organizer_id)

    events = query.order_by(Event.created_at.desc()).all()
    if not isinstance(viewer, Participant):
        return [(e, None) for e in events]

    scored = [(e, recommendation_score(e, viewer)) for e in events]
    scored.sort(key=lambda pair: (-pair[1], _start_key(pair[0])))
    return scored


def trending_events(db: Session, now: Optional[datetime] = None) -> list[tuple[Event, int]]:
    """Top published events by registrations received in the last 24 hours."""
    since = (now or utcnow()) - TRENDING_WINDOW
    recent = func.count(Registration.registration_id)
    rows = (
        db.query(Event, recent)
        .join(Registration, Registration.event_id == Event.event_id)
        .filter(Event.status == EventStatus.published, Registration.registered_at >= since)
        .group_by(Event.event_id)
        .order_by(recent.desc(), Event.created_at.desc())
        .limit(TRENDING_LIMIT)
        .all()
    )
    return [(event, count) for event, count in rows]


def list_event_registrations(db: Session, event_id: str, viewer: Account) -> list[Registration]:
    event = get_event_or_404(db, event_id)
    if not isinstance(viewer, Admin) and event.organizer_id != viewer.account_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the organizer or an admin may view registrations",
        )
    return (
        db.query(Registration)
        .filter(Registration.event_id == event_id)
        .order_by(Registration.registered_at)
        .all()
    )
