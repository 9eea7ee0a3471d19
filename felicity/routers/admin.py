"""Admin API routes: organizer accounts, directory and platform stats."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from felicity.config import Settings
from felicity.database import get_db
from felicity.dependencies import get_settings, require_admin
from felicity.models.account import Admin
from felicity.schemas.account import AccountOut, AdminStats, Credentials, OrganizerCreate, OrganizerCreated, OrganizerUpdate
from felicity.services import account_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/organizers", response_model=OrganizerCreated, status_code=201)
def create_organizer(
    payload: OrganizerCreate,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create an organizer account; the generated password is only shown in this response."""
    organizer, password = account_service.create_organizer(
        db, payload.model_dump(), settings.ORGANIZER_EMAIL_DOMAIN, settings.BCRYPT_ROUNDS
    )
    return OrganizerCreated(
        organizer=AccountOut.model_validate(organizer),
        credentials=Credentials(email=organizer.email, password=password),
    )


@router.get("/organizers", response_model=list[AccountOut])
def list_organizers(admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return account_service.list_organizers(db)


@router.patch("/organizers/{organizer_id}", response_model=AccountOut)
def update_organizer(
    organizer_id: str,
    payload: OrganizerUpdate,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return account_service.update_organizer(db, organizer_id, payload.model_dump(exclude_unset=True))


@router.delete("/organizers/{organizer_id}")
def delete_organizer(organizer_id: str, admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    """Permanently remove an organizer and everything attached to their events."""
    deleted_events = account_service.delete_organizer(db, organizer_id)
    return {"message": "Organizer deleted", "deleted_events": deleted_events}


@router.get("/accounts", response_model=list[AccountOut])
def list_accounts(
    role: Optional[str] = Query(None, description="participant, organizer or admin"),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return account_service.list_accounts(db, role)


@router.get("/stats", response_model=AdminStats)
def stats(admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return account_service.stats(db)
