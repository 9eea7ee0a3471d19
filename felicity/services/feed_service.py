"""Discussion feed. Per-event messages, replies, pins and reactions.

Every write commits and publishes while holding the event's channel lock, so
subscribers see deltas in persistence order. Payloads are built before the
commit; nothing inside the lock touches the database.
"""
import logging
import math
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from felicity.errors import NestedReplyNotAllowed, NotRegistered, ParentNotFound
from felicity.models.account import Account, Admin, Participant
from felicity.models.event import Event
from felicity.models.message import DiscussionMessage, MessageReaction, MessageType
from felicity.models.registration import Registration, RegistrationStatus
from felicity.models.types import utcnow
from felicity.realtime import ChannelHub
from felicity.services.registration_service import get_event_or_404

logger = logging.getLogger(__name__)


def serialize_message(message: DiscussionMessage, with_replies: bool = True) -> dict[str, Any]:
    author = message.author
    return {
        "message_id": message.message_id,
        "event_id": message.event_id,
        "author_id": message.author_id,
        "author_name": author.display_name if author else "Unknown",
        "author_role": author.role.value if author else "participant",
        "content": message.content,
        "type": message.message_type.value,
        "parent_id": message.parent_id,
        "pinned": message.pinned,
        "reactions": message.reaction_map(),
        "created_at": message.created_at,
        "replies": [serialize_message(r, with_replies=False) for r in message.replies] if with_replies else [],
    }


def is_event_organizer(event: Event, account: Account) -> bool:
    return event.organizer_id == account.account_id


def can_participate(db: Session, event: Event, account: Account) -> bool:
    """Organizer of the event, or a participant holding a live registration."""
    if is_event_organizer(event, account):
        return True
    if not isinstance(account, Participant):
        return False
    return (
        db.query(Registration.registration_id)
        .filter(
            Registration.event_id == event.event_id,
            Registration.participant_id == account.account_id,
            Registration.status != RegistrationStatus.cancelled,
        )
        .first()
        is not None
    )


def _get_message(db: Session, message_id: int) -> DiscussionMessage:
    message = db.query(DiscussionMessage).filter(DiscussionMessage.message_id == message_id).first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return message


def _commit_and_publish(db: Session, hub: ChannelHub, event_id: str, name: str, data: Any) -> None:
    with hub.ordered(event_id):
        db.commit()
        hub.publish(event_id, name, data)


def post_message(
    db: Session,
    hub: ChannelHub,
    event_id: str,
    author: Account,
    content: str,
    message_type: str = "message",
    parent_id: Optional[int] = None,
) -> dict[str, Any]:
    event = get_event_or_404(db, event_id)
    if not can_participate(db, event, author):
        raise NotRegistered()

    content = content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Message content cannot be empty")
    try:
        kind = MessageType(message_type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid message type: {message_type}")
    if kind == MessageType.announcement and not is_event_organizer(event, author):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the organizer can post announcements")

    if parent_id is not None:
        parent = (
            db.query(DiscussionMessage)
            .filter(DiscussionMessage.message_id == parent_id, DiscussionMessage.event_id == event_id)
            .first()
        )
        if not parent:
            raise ParentNotFound()
        if parent.parent_id is not None:
            raise NestedReplyNotAllowed()

    message = DiscussionMessage(
        event_id=event_id,
        author_id=author.account_id,
        content=content,
        message_type=kind,
        parent_id=parent_id,
    )
    db.add(message)
    db.flush()
    payload = serialize_message(message)
    _commit_and_publish(db, hub, event_id, "new_message", payload)
    logger.info("Account %s posted %s %d in event %s", author.account_id, kind.value, payload["message_id"], event_id)
    return payload


def delete_message(db: Session, hub: ChannelHub, message_id: int, requester: Account) -> dict[str, Any]:
    """Delete a message and its replies; author or the event's organizer only."""
    message = _get_message(db, message_id)
    event = message.event
    if message.author_id != requester.account_id and not is_event_organizer(event, requester):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to delete this message")

    event_id = event.event_id
    delta = {"message_id": message.message_id, "parent_id": message.parent_id}
    db.delete(message)
    db.flush()
    _commit_and_publish(db, hub, event_id, "delete_message", delta)
    logger.info("Account %s deleted message %d in event %s", requester.account_id, message_id, event_id)
    return delta


def pin_message(db: Session, hub: ChannelHub, message_id: int, requester: Account) -> dict[str, Any]:
    message = _get_message(db, message_id)
    event = message.event
    if not is_event_organizer(event, requester):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the organizer can pin messages")
    if message.parent_id is not None:
        raise HTTPException(status_code=400, detail="Only top-level messages can be pinned")

    message.pinned = not message.pinned
    db.flush()
    delta = {"message_id": message.message_id, "pinned": message.pinned}
    _commit_and_publish(db, hub, event.event_id, "pin_message", delta)
    logger.info("Message %d %s by %s", message_id, "pinned" if delta["pinned"] else "unpinned", requester.account_id)
    return delta


def toggle_reaction(
    db: Session, hub: ChannelHub, message_id: int, account: Account, emoji: str, allowed: list[str]
) -> dict[str, Any]:
    """Add the reaction, or remove it if this account already reacted with the same emoji."""
    if emoji not in allowed:
        raise HTTPException(status_code=400, detail="Invalid reaction")
    message = _get_message(db, message_id)
    event = message.event
    if not can_participate(db, event, account):
        raise NotRegistered("You must be registered for this event to react")

    existing = (
        db.query(MessageReaction)
        .filter(
            MessageReaction.message_id == message_id,
            MessageReaction.emoji == emoji,
            MessageReaction.account_id == account.account_id,
        )
        .first()
    )
    if existing:
        message.reactions.remove(existing)
    else:
        message.reactions.append(MessageReaction(emoji=emoji, account_id=account.account_id, created_at=utcnow()))
    db.flush()
    delta = {"message_id": message.message_id, "reactions": message.reaction_map()}
    _commit_and_publish(db, hub, event.event_id, "reaction_update", delta)
    return delta


def list_messages(db: Session, event_id: str, viewer: Account, page: int = 1, limit: int = 50) -> dict[str, Any]:
    """Top-level messages, pinned first then newest, each with its replies oldest first."""
    event = get_event_or_404(db, event_id)
    if not isinstance(viewer, Admin) and not can_participate(db, event, viewer):
        raise NotRegistered("You must be registered for this event to view the discussion")

    top_level = db.query(DiscussionMessage).filter(
        DiscussionMessage.event_id == event_id, DiscussionMessage.parent_id.is_(None)
    )
    total = top_level.count()
    messages = (
        top_level.order_by(DiscussionMessage.pinned.desc(), DiscussionMessage.message_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "messages": [serialize_message(m) for m in messages],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if total else 0},
    }


def _announcements_since(db: Session, participant: Participant, since: Optional[datetime]):
    registered_events = db.query(Registration.event_id).filter(
        Registration.participant_id == participant.account_id,
        Registration.status != RegistrationStatus.cancelled,
    )
    query = db.query(DiscussionMessage).filter(
        DiscussionMessage.event_id.in_(registered_events),
        DiscussionMessage.message_type == MessageType.announcement,
    )
    if since is not None:
        query = query.filter(DiscussionMessage.created_at > since)
    return query.order_by(DiscussionMessage.message_id.desc())


def unread_announcements(db: Session, participant: Participant) -> dict[str, Any]:
    announcements = _announcements_since(db, participant, participant.last_notification_check).all()
    return {
        "count": len(announcements),
        "announcements": [
            {
                "message_id": a.message_id,
                "event_id": a.event_id,
                "event_name": a.event.name,
                "author_name": a.author.display_name,
                "content": a.content,
                "created_at": a.created_at,
            }
            for a in announcements
        ],
    }


def mark_announcements_read(db: Session, participant: Participant, now: Optional[datetime] = None) -> datetime:
    participant.last_notification_check = now or utcnow()
    db.commit()
    db.refresh(participant)
    logger.info("Participant %s marked announcements read", participant.account_id)
    return participant.last_notification_check
