"""Password reset requests: organizers ask, admins resolve."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from felicity.config import Settings
from felicity.database import get_db
from felicity.dependencies import get_settings, require_admin, require_organizer
from felicity.models.account import Admin, Organizer
from felicity.schemas.account import Credentials, ResetApproved, ResetRequestCreate, ResetRequestOut
from felicity.services import account_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=ResetRequestOut, status_code=status.HTTP_201_CREATED)
def request_reset(
    payload: ResetRequestCreate,
    organizer: Organizer = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """Ask an admin for a new password. Only one request may be pending at a time."""
    return account_service.request_reset(db, organizer, payload.reason)


@router.get("/mine", response_model=Optional[ResetRequestOut])
def my_pending_request(organizer: Organizer = Depends(require_organizer), db: Session = Depends(get_db)):
    return account_service.my_pending_reset(db, organizer)


@router.get("/", response_model=list[ResetRequestOut])
def list_pending(admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return account_service.list_pending_resets(db)


@router.post("/{request_id}/approve", response_model=ResetApproved)
def approve(
    request_id: str,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Approve and hand back the organizer's new password (shown once)."""
    request, organizer, password = account_service.approve_reset(db, request_id, admin, settings.BCRYPT_ROUNDS)
    return ResetApproved(
        request=ResetRequestOut.model_validate(request),
        organizer_name=organizer.organizer_name,
        credentials=Credentials(email=organizer.email, password=password),
    )


@router.post("/{request_id}/reject", response_model=ResetRequestOut)
def reject(request_id: str, admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return account_service.reject_reset(db, request_id, admin)
