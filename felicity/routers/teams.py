"""Team routes, nested under their event."""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from felicity.database import get_db
from felicity.dependencies import get_notifier, require_participant
from felicity.models.account import Participant
from felicity.notifications import Notifier
from felicity.schemas.team import TeamCreate, TeamInvite, TeamJoin, TeamOut
from felicity.services import team_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{event_id}/teams", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
def create_team(
    event_id: str,
    payload: TeamCreate,
    leader: Participant = Depends(require_participant),
    db: Session = Depends(get_db),
):
    """Create a team; the creator becomes its leader and first member."""
    return team_service.create_team(db, event_id, leader, payload.name, payload.target_size)


@router.post("/{event_id}/teams/join", response_model=TeamOut)
def join_team(
    event_id: str,
    payload: TeamJoin,
    background_tasks: BackgroundTasks,
    participant: Participant = Depends(require_participant),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Join with an invite code. The join that fills the team registers everyone."""
    team, confirmations = team_service.join_team(db, event_id, participant, payload.invite_code)
    for confirmation in confirmations:
        background_tasks.add_task(notifier.send_registration_confirmation, **confirmation)
    return team


@router.get("/{event_id}/teams/mine", response_model=TeamOut)
def get_my_team(event_id: str, participant: Participant = Depends(require_participant), db: Session = Depends(get_db)):
    return team_service.get_my_team(db, event_id, participant)


@router.post("/{event_id}/teams/{team_id}/invite", response_model=TeamOut)
def invite_member(
    event_id: str,
    team_id: str,
    payload: TeamInvite,
    leader: Participant = Depends(require_participant),
    db: Session = Depends(get_db),
):
    return team_service.invite_member(db, event_id, team_id, leader, payload.participant_id)
