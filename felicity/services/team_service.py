"""Team registration for normal events.

A team fills up through invite-code joins. Only joined members take a seat;
an invite merely lets the invitee join. The join that brings the joined count
to the target size completes the team, registers every joined member in the
same transaction and drops any invites still outstanding.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from felicity.errors import AlreadyRegistered, TeamFull
from felicity.models.account import Participant
from felicity.models.event import Event
from felicity.models.team import MemberStatus, Team, TeamMember, TeamStatus
from felicity.models.types import utcnow
from felicity.services.registration_service import (
    check_window,
    confirmation_for,
    find_registration,
    get_event_or_404,
    register_members,
)
from felicity.tickets import random_code

logger = logging.getLogger(__name__)


def _team_event(db: Session, event_id: str) -> Event:
    event = get_event_or_404(db, event_id)
    if event.is_merchandise:
        raise HTTPException(status_code=400, detail="Teams are only available for normal events")
    return event


def team_of(db: Session, event_id: str, participant_id: str) -> Optional[Team]:
    return (
        db.query(Team)
        .join(TeamMember, TeamMember.team_id == Team.team_id)
        .filter(Team.event_id == event_id, TeamMember.participant_id == participant_id)
        .first()
    )


def _ensure_free(db: Session, event: Event, participant: Participant) -> None:
    if team_of(db, event.event_id, participant.account_id) is not None:
        raise HTTPException(status_code=400, detail=f"{participant.display_name} is already in a team for this event")
    if find_registration(db, event.event_id, participant.account_id) is not None:
        raise AlreadyRegistered(f"{participant.display_name} is already registered for this event")


def _unique_code(db: Session, event_id: str) -> str:
    while True:
        code = random_code()
        taken = db.query(Team.team_id).filter(Team.event_id == event_id, Team.invite_code == code).first()
        if taken is None:
            return code


def create_team(db: Session, event_id: str, leader: Participant, name: str, target_size: int,
                now: Optional[datetime] = None) -> Team:
    event = _team_event(db, event_id)
    check_window(event, now or utcnow())
    _ensure_free(db, event, leader)

    stamp = now or utcnow()
    team = Team(
        event_id=event_id,
        leader_id=leader.account_id,
        name=name.strip(),
        invite_code=_unique_code(db, event_id),
        target_size=target_size,
    )
    team.members.append(
        TeamMember(participant_id=leader.account_id, status=MemberStatus.joined, added_at=stamp, joined_at=stamp)
    )
    db.add(team)
    db.commit()
    db.refresh(team)
    logger.info("Participant %s created team %s for event %s", leader.account_id, team.team_id, event_id)
    return team


def _locked_team(db: Session, **criteria: Any) -> Optional[Team]:
    return db.query(Team).filter_by(**criteria).with_for_update().first()


def invite_member(db: Session, event_id: str, team_id: str, leader: Participant, participant_id: str) -> Team:
    """Invite a participant. No seat is held until they join with the code."""
    team = _locked_team(db, event_id=event_id, team_id=team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    if team.leader_id != leader.account_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the team leader can invite members")
    if team.status != TeamStatus.forming or team.joined_count >= team.target_size:
        raise TeamFull()

    invitee = db.query(Participant).filter(Participant.account_id == participant_id).first()
    if not invitee:
        raise HTTPException(status_code=404, detail="Participant not found")
    _ensure_free(db, team.event, invitee)

    team.members.append(TeamMember(participant_id=invitee.account_id, status=MemberStatus.invited))
    db.commit()
    db.refresh(team)
    logger.info("Team %s invited participant %s", team_id, participant_id)
    return team


def join_team(db: Session, event_id: str, participant: Participant, invite_code: str,
              now: Optional[datetime] = None) -> tuple[Team, list[dict[str, Any]]]:
    """Join by invite code. Returns the team and confirmation-mail arguments
    for every member when this join completed it."""
    now = now or utcnow()
    event = _team_event(db, event_id)
    team = _locked_team(db, event_id=event_id, invite_code=invite_code.strip().upper())
    if not team:
        raise HTTPException(status_code=404, detail="Invalid invite code")
    if team.status != TeamStatus.forming:
        raise TeamFull()

    membership = next((m for m in team.members if m.participant_id == participant.account_id), None)
    if membership is not None and membership.status == MemberStatus.joined:
        raise HTTPException(status_code=400, detail="You are already a member of this team")
    if team.joined_count >= team.target_size:
        raise TeamFull()
    if membership is None:
        _ensure_free(db, event, participant)
        membership = TeamMember(participant_id=participant.account_id)
        team.members.append(membership)
    membership.status = MemberStatus.joined
    membership.joined_at = now

    confirmations: list[dict[str, Any]] = []
    try:
        if team.joined_count >= team.target_size:
            team.status = TeamStatus.completed
            team.members = [m for m in team.members if m.status == MemberStatus.joined]
            db.flush()
            members = [m.participant for m in team.members]
            registrations = register_members(db, event, members, now)
            confirmations = [confirmation_for(r, event, p) for r, p in zip(registrations, members)]
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyRegistered("A team member is already registered for this event")
    except HTTPException:
        db.rollback()
        raise

    db.refresh(team)
    logger.info("Participant %s joined team %s (%s)", participant.account_id, team.team_id, team.status.value)
    return team, confirmations


def get_my_team(db: Session, event_id: str, participant: Participant) -> Team:
    get_event_or_404(db, event_id)
    team = team_of(db, event_id, participant.account_id)
    if not team:
        raise HTTPException(status_code=404, detail="You are not in a team for this event")
    return team
