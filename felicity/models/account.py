"""Account ORM models: Participant, Organizer and Admin.

One ``accounts`` table discriminated by ``role``. Role-specific columns live on
the subclass, so they are only reachable once the account has been narrowed
with ``isinstance``.
"""
import enum
from sqlalchemy import Column, String, Text, Boolean, JSON, ForeignKey, Table, Enum as SAEnum
from sqlalchemy.orm import relationship
from felicity.database import Base
from felicity.models.types import UTCDateTime, new_id, utcnow


class Role(str, enum.Enum):
    participant = "participant"
    organizer = "organizer"
    admin = "admin"


class ParticipantType(str, enum.Enum):
    iiit = "iiit"
    non_iiit = "non-iiit"


participant_follows = Table(
    "participant_follows",
    Base.metadata,
    Column("participant_id", String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True),
    Column("organizer_id", String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True),
)


class Account(Base):
    __tablename__ = "accounts"

    account_id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False, default="")
    role = Column(SAEnum(Role), nullable=False)
    onboarding_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __mapper_args__ = {"polymorphic_on": role}

    @property
    def display_name(self) -> str:
        return self.email


class Participant(Account):
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    participant_type = Column(SAEnum(ParticipantType, values_callable=lambda e: [m.value for m in e]), nullable=True)
    college = Column(String(200), nullable=True)
    contact_number = Column(String(30), nullable=True)
    interests = Column(JSON, nullable=True, default=list)
    last_notification_check = Column(UTCDateTime, nullable=True)

    followed_organizers = relationship(
        "Organizer",
        secondary=participant_follows,
        primaryjoin=lambda: Account.account_id == participant_follows.c.participant_id,
        secondaryjoin=lambda: Account.account_id == participant_follows.c.organizer_id,
        back_populates="followers",
    )

    __mapper_args__ = {"polymorphic_identity": Role.participant}

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.email

    @property
    def followed_organizer_ids(self) -> list[str]:
        return [o.account_id for o in self.followed_organizers]


class Organizer(Account):
    organizer_name = Column(String(150), nullable=True)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    contact_email = Column(String(255), nullable=True)
    webhook_url = Column(String(500), nullable=True)

    followers = relationship(
        "Participant",
        secondary=participant_follows,
        primaryjoin=lambda: Account.account_id == participant_follows.c.organizer_id,
        secondaryjoin=lambda: Account.account_id == participant_follows.c.participant_id,
        back_populates="followed_organizers",
    )
    events = relationship("Event", back_populates="organizer", cascade="all, delete-orphan")
    reset_requests = relationship(
        "PasswordResetRequest",
        foreign_keys="PasswordResetRequest.organizer_id",
        back_populates="organizer",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_identity": Role.organizer}

    @property
    def display_name(self) -> str:
        return self.organizer_name or self.email


class Admin(Account):
    __mapper_args__ = {"polymorphic_identity": Role.admin}
