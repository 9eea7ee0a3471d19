"""Event and MerchandiseVariant ORM models."""
import enum
from sqlalchemy import Column, String, Text, Integer, JSON, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from felicity.database import Base
from felicity.models.types import UTCDateTime, new_id, utcnow


class EventType(str, enum.Enum):
    normal = "normal"
    merchandise = "merchandise"


class EventStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    ongoing = "ongoing"
    completed = "completed"
    closed = "closed"


class FieldType(str, enum.Enum):
    text = "text"
    email = "email"
    number = "number"
    dropdown = "dropdown"
    checkbox = "checkbox"
    file = "file"


class Event(Base):
    __tablename__ = "events"

    event_id = Column(String(36), primary_key=True, default=new_id)
    organizer_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(SAEnum(EventType), nullable=False, default=EventType.normal)
    status = Column(SAEnum(EventStatus), nullable=False, default=EventStatus.draft)
    eligibility = Column(String(200), nullable=True)
    registration_deadline = Column(UTCDateTime, nullable=True)
    start_time = Column(UTCDateTime, nullable=True)
    end_time = Column(UTCDateTime, nullable=True)
    registration_limit = Column(Integer, nullable=False, default=100)
    registration_fee = Column(Integer, nullable=False, default=0)
    purchase_limit = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    # Ordered list of {label, field_type, required, options}
    custom_form = Column(JSON, nullable=False, default=list)

    # Denormalized counters; only mutated through conditional UPDATEs
    registration_count = Column(Integer, nullable=False, default=0)
    revenue = Column(Integer, nullable=False, default=0)
    attendance_count = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    organizer = relationship("Organizer", back_populates="events")
    variants = relationship(
        "MerchandiseVariant",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="MerchandiseVariant.variant_id",
    )
    registrations = relationship("Registration", back_populates="event", cascade="all, delete-orphan")
    messages = relationship("DiscussionMessage", back_populates="event", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="event", cascade="all, delete-orphan")

    @property
    def is_merchandise(self) -> bool:
        return self.event_type == EventType.merchandise


class MerchandiseVariant(Base):
    """One purchasable product/size combination with its own stock."""

    __tablename__ = "merchandise_variants"
    __table_args__ = (UniqueConstraint("event_id", "product_name", "size", name="uq_variant_product_size"),)

    variant_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = Column(String(150), nullable=False)
    size = Column(String(20), nullable=False, default="")
    stock = Column(Integer, nullable=False, default=0)

    event = relationship("Event", back_populates="variants")
