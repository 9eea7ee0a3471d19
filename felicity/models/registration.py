"""Registration ORM model: a participant's claim on an event."""
import enum
from sqlalchemy import Column, String, Integer, Boolean, JSON, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from felicity.database import Base
from felicity.models.types import UTCDateTime, new_id, utcnow


class PaymentStatus(str, enum.Enum):
    paid = "paid"
    pending = "pending"
    refunded = "refunded"


class RegistrationStatus(str, enum.Enum):
    registered = "registered"
    cancelled = "cancelled"
    completed = "completed"


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (UniqueConstraint("event_id", "participant_id", name="uq_registration_event_participant"),)

    registration_id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_id = Column(String(64), nullable=False, unique=True)
    form_data = Column(JSON, nullable=False, default=dict)
    variant_id = Column(Integer, ForeignKey("merchandise_variants.variant_id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    amount_paid = Column(Integer, nullable=False, default=0)
    payment_status = Column(SAEnum(PaymentStatus), nullable=False, default=PaymentStatus.paid)
    status = Column(SAEnum(RegistrationStatus), nullable=False, default=RegistrationStatus.registered)
    attended = Column(Boolean, nullable=False, default=False)
    attendance_timestamp = Column(UTCDateTime, nullable=True)
    registered_at = Column(UTCDateTime, nullable=False, default=utcnow)

    event = relationship("Event", back_populates="registrations")
    participant = relationship("Participant")
    variant = relationship("MerchandiseVariant")
