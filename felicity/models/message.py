"""Discussion feed ORM models: per-event messages and their reactions."""
import enum
from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import relationship
from felicity.database import Base
from felicity.models.types import UTCDateTime, utcnow


class MessageType(str, enum.Enum):
    message = "message"
    announcement = "announcement"


class DiscussionMessage(Base):
    __tablename__ = "discussion_messages"
    __table_args__ = (Index("ix_messages_event_created", "event_id", "created_at"),)

    # Autoincrement id doubles as the persistence order within a channel
    message_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(SAEnum(MessageType), nullable=False, default=MessageType.message)
    parent_id = Column(Integer, ForeignKey("discussion_messages.message_id", ondelete="CASCADE"), nullable=True)
    pinned = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    event = relationship("Event", back_populates="messages")
    author = relationship("Account")
    parent = relationship("DiscussionMessage", remote_side=[message_id], back_populates="replies")
    replies = relationship(
        "DiscussionMessage",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="DiscussionMessage.message_id",
    )
    reactions = relationship("MessageReaction", back_populates="message", cascade="all, delete-orphan")

    def reaction_map(self) -> dict[str, list[str]]:
        """emoji -> account ids, in reaction order."""
        result: dict[str, list[str]] = {}
        for r in sorted(self.reactions, key=lambda r: r.created_at):
            result.setdefault(r.emoji, []).append(r.account_id)
        return result


class MessageReaction(Base):
    __tablename__ = "message_reactions"

    message_id = Column(Integer, ForeignKey("discussion_messages.message_id", ondelete="CASCADE"), primary_key=True)
    emoji = Column(String(16), primary_key=True)
    account_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    message = relationship("DiscussionMessage", back_populates="reactions")
