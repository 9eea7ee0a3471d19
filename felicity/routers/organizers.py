"""Public organizer directory."""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from felicity.database import get_db
from felicity.schemas.account import OrganizerPublic
from felicity.services import account_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[OrganizerPublic])
def list_organizers(db: Session = Depends(get_db)):
    """List all organizers (clubs, councils, fest teams)."""
    return account_service.list_organizers(db)


@router.get("/{organizer_id}", response_model=OrganizerPublic)
def get_organizer(organizer_id: str, db: Session = Depends(get_db)):
    return account_service.get_organizer(db, organizer_id)
