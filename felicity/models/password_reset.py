"""PasswordResetRequest ORM model: organizer asks, admin resolves."""
import enum
from sqlalchemy import Column, String, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from felicity.database import Base
from felicity.models.types import UTCDateTime, new_id, utcnow


class ResetStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PasswordResetRequest(Base):
    __tablename__ = "password_reset_requests"

    request_id = Column(String(36), primary_key=True, default=new_id)
    organizer_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False)
    status = Column(SAEnum(ResetStatus), nullable=False, default=ResetStatus.pending)
    reason = Column(Text, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    resolved_at = Column(UTCDateTime, nullable=True)
    resolved_by = Column(String(36), ForeignKey("accounts.account_id", ondelete="SET NULL"), nullable=True)

    organizer = relationship("Organizer", foreign_keys=[organizer_id], back_populates="reset_requests")
