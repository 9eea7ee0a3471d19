"""Account service: participants, organizers, admins and password resets.

Authentication itself (tokens, sessions) happens upstream; this module owns
account records, password hashes and the admin-side management flows.
"""
import logging
from datetime import datetime
from typing import Any, Optional

import bcrypt
from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from felicity.errors import EmailTaken
from felicity.models.account import Account, Admin, Organizer, Participant, ParticipantType, Role
from felicity.models.event import Event
from felicity.models.password_reset import PasswordResetRequest, ResetStatus
from felicity.models.registration import Registration
from felicity.models.types import utcnow
from felicity.tickets import generate_password

logger = logging.getLogger(__name__)

PARTICIPANT_FIELDS = {"first_name", "last_name", "college", "contact_number", "interests"}
ORGANIZER_FIELDS = {"organizer_name", "category", "description", "contact_email", "webhook_url"}


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    # Hashes are only ever made from passwords of at most 72 bytes
    if not password_hash or len(encoded) > 72:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


def get_account(db: Session, account_id: str) -> Account:
    account = db.query(Account).filter(Account.account_id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


def get_organizer(db: Session, organizer_id: str) -> Organizer:
    organizer = db.query(Organizer).filter(Organizer.account_id == organizer_id).first()
    if not organizer:
        raise HTTPException(status_code=404, detail="Organizer not found")
    return organizer


def _email_in_use(db: Session, email: str) -> bool:
    return db.query(Account.account_id).filter(Account.email == email).first() is not None


def _commit_new_account(db: Session, account: Account, message: Optional[str] = None) -> None:
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailTaken(message)
    db.refresh(account)


def register_participant(db: Session, data: dict[str, Any], rounds: int = 12) -> Participant:
    """Self-service signup. Organizers and admins are never created here."""
    email = data["email"].strip().lower()
    if _email_in_use(db, email):
        raise EmailTaken()

    participant_type = data.get("participant_type")
    try:
        participant_type = ParticipantType(participant_type) if participant_type else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid participant type: {participant_type}")

    participant = Participant(
        email=email,
        password_hash=hash_password(data["password"], rounds),
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        participant_type=participant_type,
        college=data.get("college"),
        contact_number=data.get("contact_number"),
        interests=list(data.get("interests") or []),
    )
    _commit_new_account(db, participant)
    logger.info("Registered participant %s (%s)", participant.account_id, email)
    return participant


def update_profile(db: Session, account: Account, updates: dict[str, Any]) -> Account:
    """Partial profile update; only fields belonging to the account's role are accepted."""
    if isinstance(account, Participant):
        allowed = PARTICIPANT_FIELDS
    elif isinstance(account, Organizer):
        allowed = ORGANIZER_FIELDS
    else:
        allowed = set()

    rejected = sorted(set(updates) - allowed)
    if rejected:
        raise HTTPException(
            status_code=400,
            detail=f"Fields not editable for role '{account.role.value}': {', '.join(rejected)}",
        )

    for field, value in updates.items():
        setattr(account, field, value)
    db.commit()
    db.refresh(account)
    logger.info("Updated profile of %s (%s)", account.account_id, ", ".join(sorted(updates)) or "no fields")
    return account


def complete_onboarding(db: Session, participant: Participant, interests: list[str], organizer_ids: list[str]) -> Participant:
    participant.interests = list(interests)
    if organizer_ids:
        organizers = db.query(Organizer).filter(Organizer.account_id.in_(organizer_ids)).all()
        participant.followed_organizers = organizers
    participant.onboarding_completed = True
    db.commit()
    db.refresh(participant)
    logger.info("Participant %s completed onboarding", participant.account_id)
    return participant


def follow_organizer(db: Session, participant: Participant, organizer_id: str) -> Participant:
    organizer = get_organizer(db, organizer_id)
    if organizer not in participant.followed_organizers:
        participant.followed_organizers.append(organizer)
        db.commit()
        logger.info("Participant %s now follows organizer %s", participant.account_id, organizer_id)
    db.refresh(participant)
    return participant


def unfollow_organizer(db: Session, participant: Participant, organizer_id: str) -> Participant:
    organizer = get_organizer(db, organizer_id)
    if organizer in participant.followed_organizers:
        participant.followed_organizers.remove(organizer)
        db.commit()
        logger.info("Participant %s unfollowed organizer %s", participant.account_id, organizer_id)
    db.refresh(participant)
    return participant


def change_password(db: Session, account: Account, current: str, new: str, rounds: int = 12) -> None:
    if len(new) < 6:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters")
    if not verify_password(current, account.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")
    account.password_hash = hash_password(new, rounds)
    db.commit()
    logger.info("Password changed for %s", account.account_id)


# ---------------------------------------------------------------------------
# Admin: organizer management
# ---------------------------------------------------------------------------

def organizer_login_email(organizer_name: str, domain: str) -> str:
    return "".join(organizer_name.lower().split()) + "@" + domain


def create_organizer(db: Session, data: dict[str, Any], domain: str, rounds: int = 12) -> tuple[Organizer, str]:
    """Create an organizer with a generated one-time password.

    The plain password is returned exactly once; only its hash is stored.
    """
    login_email = organizer_login_email(data["organizer_name"], domain)
    duplicate = "An organizer with this name already exists"
    if _email_in_use(db, login_email):
        raise EmailTaken(duplicate)

    password = generate_password()
    organizer = Organizer(
        email=login_email,
        password_hash=hash_password(password, rounds),
        organizer_name=data["organizer_name"].strip(),
        category=data["category"],
        description=data.get("description") or "",
        contact_email=data.get("contact_email") or login_email,
    )
    _commit_new_account(db, organizer, duplicate)
    logger.info("Admin created organizer %s (%s)", organizer.account_id, login_email)
    return organizer, password


def list_organizers(db: Session) -> list[Organizer]:
    return db.query(Organizer).order_by(Organizer.created_at.desc()).all()


def update_organizer(db: Session, organizer_id: str, updates: dict[str, Any]) -> Organizer:
    organizer = get_organizer(db, organizer_id)
    for field, value in updates.items():
        if field in ORGANIZER_FIELDS and value is not None:
            setattr(organizer, field, value)
    db.commit()
    db.refresh(organizer)
    logger.info("Admin updated organizer %s", organizer_id)
    return organizer


def delete_organizer(db: Session, organizer_id: str) -> int:
    """Remove an organizer together with their events and everything under them."""
    organizer = get_organizer(db, organizer_id)
    event_count = len(organizer.events)
    db.delete(organizer)
    db.commit()
    logger.info("Admin removed organizer %s along with %d event(s)", organizer_id, event_count)
    return event_count


def list_accounts(db: Session, role: Optional[str] = None) -> list[Account]:
    query = db.query(Account)
    if role:
        try:
            query = query.filter(Account.role == Role(role))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
    return query.order_by(Account.created_at.desc()).all()


def stats(db: Session) -> dict[str, Any]:
    def _count_role(role: Role) -> int:
        return db.query(func.count(Account.account_id)).filter(Account.role == role).scalar()

    recent = db.query(Event).order_by(Event.created_at.desc()).limit(5).all()
    return {
        "total_participants": _count_role(Role.participant),
        "total_organizers": _count_role(Role.organizer),
        "total_events": db.query(func.count(Event.event_id)).scalar(),
        "total_registrations": db.query(func.count(Registration.registration_id)).scalar(),
        "recent_events": [
            {"event_id": e.event_id, "name": e.name, "status": e.status.value, "created_at": e.created_at}
            for e in recent
        ],
    }


def ensure_admin(db: Session, email: str, password: str, rounds: int = 12) -> Optional[Admin]:
    """Create the default admin on first start; no-op once any admin exists."""
    if db.query(Admin).first() is not None:
        return None
    admin = Admin(email=email.lower(), password_hash=hash_password(password, rounds))
    db.add(admin)
    db.commit()
    logger.info("Created default admin account %s", admin.email)
    return admin


# ---------------------------------------------------------------------------
# Password reset requests (organizer asks, admin resolves)
# ---------------------------------------------------------------------------

def my_pending_reset(db: Session, organizer: Organizer) -> Optional[PasswordResetRequest]:
    return (
        db.query(PasswordResetRequest)
        .filter(
            PasswordResetRequest.organizer_id == organizer.account_id,
            PasswordResetRequest.status == ResetStatus.pending,
        )
        .order_by(PasswordResetRequest.created_at.desc())
        .first()
    )


def request_reset(db: Session, organizer: Organizer, reason: str = "") -> PasswordResetRequest:
    if my_pending_reset(db, organizer) is not None:
        raise HTTPException(status_code=400, detail="You already have a pending password reset request")
    request = PasswordResetRequest(organizer_id=organizer.account_id, reason=reason.strip())
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("Organizer %s requested a password reset (%s)", organizer.account_id, request.request_id)
    return request


def list_pending_resets(db: Session) -> list[PasswordResetRequest]:
    return (
        db.query(PasswordResetRequest)
        .filter(PasswordResetRequest.status == ResetStatus.pending)
        .order_by(PasswordResetRequest.created_at)
        .all()
    )


def _pending_reset_or_error(db: Session, request_id: str) -> PasswordResetRequest:
    request = db.query(PasswordResetRequest).filter(PasswordResetRequest.request_id == request_id).first()
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")
    if request.status != ResetStatus.pending:
        raise HTTPException(status_code=400, detail=f"Request is already {request.status.value}")
    return request


def _resolve(request: PasswordResetRequest, new_status: ResetStatus, admin: Admin, now: Optional[datetime]) -> None:
    request.status = new_status
    request.resolved_at = now or utcnow()
    request.resolved_by = admin.account_id


def approve_reset(
    db: Session, request_id: str, admin: Admin, rounds: int = 12, now: Optional[datetime] = None
) -> tuple[PasswordResetRequest, Organizer, str]:
    """Approve a pending request: mint a new password and hand it back once."""
    request = _pending_reset_or_error(db, request_id)
    organizer = request.organizer
    password = generate_password()
    organizer.password_hash = hash_password(password, rounds)
    _resolve(request, ResetStatus.approved, admin, now)
    db.commit()
    db.refresh(request)
    logger.info("Password reset %s approved by admin %s", request_id, admin.account_id)
    return request, organizer, password


def reject_reset(db: Session, request_id: str, admin: Admin, now: Optional[datetime] = None) -> PasswordResetRequest:
    request = _pending_reset_or_error(db, request_id)
    _resolve(request, ResetStatus.rejected, admin, now)
    db.commit()
    db.refresh(request)
    logger.info("Password reset %s rejected by admin %s", request_id, admin.account_id)
    return request
