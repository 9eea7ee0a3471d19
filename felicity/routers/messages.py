"""Discussion feed routes and the participant announcement inbox."""
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from felicity.config import Settings
from felicity.database import get_db
from felicity.dependencies import get_actor, get_hub, get_settings, require_participant
from felicity.models.account import Account, Participant
from felicity.realtime import ChannelHub
from felicity.schemas.message import MessageCreate, MessageOut, MessagePage, ReactionToggle, UnreadAnnouncements
from felicity.services import feed_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/events/{event_id}/messages", response_model=MessagePage)
def list_messages(
    event_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return feed_service.list_messages(db, event_id, actor, page, limit)


@router.post("/events/{event_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def post_message(
    event_id: str,
    payload: MessageCreate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
    hub: ChannelHub = Depends(get_hub),
):
    """Post a message, reply or (organizer only) announcement."""
    return feed_service.post_message(db, hub, event_id, actor, payload.content, payload.type, payload.parent_id)


@router.delete("/messages/{message_id}")
def delete_message(
    message_id: int,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
    hub: ChannelHub = Depends(get_hub),
):
    return feed_service.delete_message(db, hub, message_id, actor)


@router.post("/messages/{message_id}/pin")
def pin_message(
    message_id: int,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
    hub: ChannelHub = Depends(get_hub),
):
    """Toggle the pinned flag (event organizer only)."""
    return feed_service.pin_message(db, hub, message_id, actor)


@router.post("/messages/{message_id}/react")
def react(
    message_id: int,
    payload: ReactionToggle,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
    hub: ChannelHub = Depends(get_hub),
    settings: Settings = Depends(get_settings),
):
    return feed_service.toggle_reaction(db, hub, message_id, actor, payload.emoji, settings.allowed_reactions)


@router.get("/notifications/unread", response_model=UnreadAnnouncements)
def unread_announcements(participant: Participant = Depends(require_participant), db: Session = Depends(get_db)):
    return feed_service.unread_announcements(db, participant)


@router.post("/notifications/read")
def mark_read(participant: Participant = Depends(require_participant), db: Session = Depends(get_db)):
    return {"last_notification_check": feed_service.mark_announcements_read(db, participant)}
