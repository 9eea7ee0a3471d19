"""Account API routes: signup, profile and follows."""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from felicity.config import Settings
from felicity.database import get_db
from felicity.dependencies import get_actor, get_settings, require_participant
from felicity.models.account import Account, Participant
from felicity.schemas.account import (
    AccountOut,
    OnboardingPayload,
    OrganizerPublic,
    ParticipantCreate,
    PasswordChange,
    ProfileUpdate,
)
from felicity.services import account_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def signup(payload: ParticipantCreate, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """Self-service participant signup."""
    return account_service.register_participant(db, payload.model_dump(), settings.BCRYPT_ROUNDS)


@router.get("/me", response_model=AccountOut)
def get_me(actor: Account = Depends(get_actor)):
    return actor


@router.patch("/me", response_model=AccountOut)
def update_me(payload: ProfileUpdate, actor: Account = Depends(get_actor), db: Session = Depends(get_db)):
    """Partial profile update (role-appropriate fields only)."""
    return account_service.update_profile(db, actor, payload.model_dump(exclude_unset=True))


@router.post("/me/onboarding", response_model=AccountOut)
def complete_onboarding(
    payload: OnboardingPayload,
    participant: Participant = Depends(require_participant),
    db: Session = Depends(get_db),
):
    return account_service.complete_onboarding(db, participant, payload.interests, payload.followed_organizer_ids)


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: PasswordChange,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    account_service.change_password(db, actor, payload.current_password, payload.new_password, settings.BCRYPT_ROUNDS)


@router.get("/me/following", response_model=list[OrganizerPublic])
def list_following(participant: Participant = Depends(require_participant)):
    return participant.followed_organizers


@router.post("/me/following/{organizer_id}", response_model=AccountOut)
def follow(organizer_id: str, participant: Participant = Depends(require_participant), db: Session = Depends(get_db)):
    return account_service.follow_organizer(db, participant, organizer_id)


@router.delete("/me/following/{organizer_id}", response_model=AccountOut)
def unfollow(organizer_id: str, participant: Participant = Depends(require_participant), db: Session = Depends(get_db)):
    return account_service.unfollow_organizer(db, participant, organizer_id)
