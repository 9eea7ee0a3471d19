"""Registration service: the capacity path.

Preconditions are checked in a fixed order so the caller always sees the
first failing reason. Counters are then changed only through conditional
UPDATEs whose WHERE clause re-checks the precondition, so a request that
passed the read-side checks can still lose the race and is turned away with
the same error instead of overbooking.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from felicity.errors import (
    AlreadyRegistered,
    DeadlinePassed,
    EventFull,
    MissingRequiredField,
    OutOfStock,
    PurchaseLimitExceeded,
    RegistrationClosed,
    VariantNotFound,
)
from felicity.models.account import Participant
from felicity.models.event import Event, EventStatus, FieldType, MerchandiseVariant
from felicity.models.registration import PaymentStatus, Registration
from felicity.models.types import utcnow
from felicity.tickets import build_qr_payload, mint_ticket_id

logger = logging.getLogger(__name__)


def get_event_or_404(db: Session, event_id: str) -> Event:
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def find_registration(db: Session, event_id: str, participant_id: str) -> Optional[Registration]:
    return (
        db.query(Registration)
        .filter(Registration.event_id == event_id, Registration.participant_id == participant_id)
        .first()
    )


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def validate_form(custom_form: list[dict[str, Any]], form_data: dict[str, Any]) -> None:
    """Raise MissingRequiredField for the first required field left empty."""
    for field in custom_form or []:
        if not field.get("required"):
            continue
        label = field["label"]
        value = form_data.get(label)
        if field.get("field_type") == FieldType.checkbox.value:
            if value is not True:
                raise MissingRequiredField(label)
        elif _is_empty(value):
            raise MissingRequiredField(label)


def check_window(event: Event, now: datetime) -> None:
    if event.status != EventStatus.published:
        raise RegistrationClosed()
    if event.registration_deadline is not None and now >= event.registration_deadline:
        raise DeadlinePassed()


def _resolve_variant(db: Session, event: Event, selection: Optional[dict[str, Any]]) -> MerchandiseVariant:
    if not selection:
        raise VariantNotFound("Please select a variant")
    query = db.query(MerchandiseVariant).filter(MerchandiseVariant.event_id == event.event_id)
    if selection.get("variant_id") is not None:
        query = query.filter(MerchandiseVariant.variant_id == selection["variant_id"])
    elif selection.get("product_name"):
        query = query.filter(
            MerchandiseVariant.product_name == selection["product_name"],
            MerchandiseVariant.size == (selection.get("size") or ""),
        )
    else:
        raise VariantNotFound("Please select a variant")
    variant = query.first()
    if not variant:
        raise VariantNotFound()
    return variant


def _closed_or(db: Session, event_id: str, error: Exception) -> Exception:
    """After a zero-row update, report a concurrent close rather than the capacity error."""
    current = db.query(Event.status).filter(Event.event_id == event_id).scalar()
    if current != EventStatus.published:
        return RegistrationClosed()
    return error


def _take_seat(db: Session, event: Event) -> None:
    result = db.execute(
        update(Event)
        .where(
            Event.event_id == event.event_id,
            Event.status == EventStatus.published,
            Event.registration_count < Event.registration_limit,
        )
        .values(
            registration_count=Event.registration_count + 1,
            revenue=Event.revenue + Event.registration_fee,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise _closed_or(db, event.event_id, EventFull())


def _take_stock(db: Session, event: Event, variant: MerchandiseVariant, quantity: int) -> None:
    result = db.execute(
        update(MerchandiseVariant)
        .where(MerchandiseVariant.variant_id == variant.variant_id, MerchandiseVariant.stock >= quantity)
        .values(stock=MerchandiseVariant.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise OutOfStock()
    result = db.execute(
        update(Event)
        .where(Event.event_id == event.event_id, Event.status == EventStatus.published)
        .values(
            registration_count=Event.registration_count + 1,
            revenue=Event.revenue + Event.registration_fee * quantity,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise RegistrationClosed()


def _insert_registration(
    db: Session,
    event: Event,
    participant: Participant,
    form_data: dict[str, Any],
    variant: Optional[MerchandiseVariant] = None,
    quantity: int = 1,
) -> Registration:
    registration = Registration(
        event_id=event.event_id,
        participant_id=participant.account_id,
        ticket_id=mint_ticket_id(),
        form_data=form_data,
        variant_id=variant.variant_id if variant is not None else None,
        quantity=quantity,
        amount_paid=(event.registration_fee or 0) * quantity,
        payment_status=PaymentStatus.paid,
    )
    db.add(registration)
    db.flush()
    return registration


def confirmation_for(registration: Registration, event: Event, participant: Participant,
                     variant: Optional[MerchandiseVariant] = None) -> dict[str, Any]:
    """Plain-data mail arguments, safe to hand to a background task."""
    return {
        "to_email": participant.email,
        "participant_name": participant.display_name,
        "event_name": event.name,
        "is_merchandise": event.is_merchandise,
        "start_time": event.start_time,
        "ticket_id": registration.ticket_id,
        "qr_payload": build_qr_payload(registration.ticket_id, event.event_id, participant.account_id),
        "amount": registration.amount_paid,
        "variant_label": f"{variant.product_name} {variant.size}".strip() if variant is not None else None,
        "quantity": registration.quantity,
    }


def attempt_register(
    db: Session,
    event_id: str,
    participant: Participant,
    form_data: Optional[dict[str, Any]] = None,
    variant: Optional[dict[str, Any]] = None,
    quantity: int = 1,
    now: Optional[datetime] = None,
) -> tuple[Registration, dict[str, Any]]:
    """Register a participant for an event or merchandise order.

    Returns the committed registration and the confirmation-mail arguments.
    """
    now = now or utcnow()
    form_data = dict(form_data or {})
    event = get_event_or_404(db, event_id)

    check_window(event, now)
    if find_registration(db, event.event_id, participant.account_id) is not None:
        raise AlreadyRegistered()

    chosen: Optional[MerchandiseVariant] = None
    if event.is_merchandise:
        chosen = _resolve_variant(db, event, variant)
        if quantity < 1 or (event.purchase_limit and quantity > event.purchase_limit):
            raise PurchaseLimitExceeded(f"Purchase limit is {event.purchase_limit} per participant")
        if chosen.stock < quantity:
            raise OutOfStock()
        form_data = {}
    else:
        quantity = 1
        if event.registration_count >= event.registration_limit:
            raise EventFull()
        validate_form(event.custom_form, form_data)

    try:
        if chosen is not None:
            _take_stock(db, event, chosen, quantity)
        else:
            _take_seat(db, event)
        registration = _insert_registration(db, event, participant, form_data, chosen, quantity)
        confirmation = confirmation_for(registration, event, participant, chosen)
        db.commit()
    except IntegrityError:
        db.rollback()
        if find_registration(db, event.event_id, participant.account_id) is not None:
            raise AlreadyRegistered()
        raise
    except HTTPException:
        db.rollback()
        raise

    logger.info(
        "Participant %s registered for event %s (ticket %s, qty %d)",
        participant.account_id, event_id, confirmation["ticket_id"], quantity,
    )
    return registration, confirmation


def register_members(db: Session, event: Event, members: list[Participant], now: Optional[datetime] = None) -> list[Registration]:
    """Register every member through the seat path inside the caller's transaction.

    Raises on the first failure and leaves commit/rollback to the caller, so a
    team is registered all-or-nothing.
    """
    now = now or utcnow()
    check_window(event, now)
    registrations = []
    for member in members:
        if find_registration(db, event.event_id, member.account_id) is not None:
            raise AlreadyRegistered(f"{member.display_name} is already registered for this event")
        _take_seat(db, event)
        registrations.append(_insert_registration(db, event, member, {}))
    return registrations


def my_registrations(db: Session, participant: Participant) -> list[Registration]:
    return (
        db.query(Registration)
        .filter(Registration.participant_id == participant.account_id)
        .order_by(Registration.registered_at.desc())
        .all()
    )


def check_registration(db: Session, event_id: str, participant: Participant) -> Optional[Registration]:
    get_event_or_404(db, event_id)
    return find_registration(db, event_id, participant.account_id)
