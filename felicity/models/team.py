"""Team and TeamMember ORM models (normal events only)."""
import enum
from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from felicity.database import Base
from felicity.models.types import UTCDateTime, new_id, utcnow


class TeamStatus(str, enum.Enum):
    forming = "forming"
    completed = "completed"


class MemberStatus(str, enum.Enum):
    invited = "invited"
    joined = "joined"


class Team(Base):
    __tablename__ = "teams"
    __table_args__ = (UniqueConstraint("event_id", "invite_code", name="uq_team_invite_code"),)

    team_id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False, index=True)
    leader_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), nullable=False)
    name = Column(String(150), nullable=False)
    invite_code = Column(String(12), nullable=False)
    target_size = Column(Integer, nullable=False)
    status = Column(SAEnum(TeamStatus), nullable=False, default=TeamStatus.forming)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    event = relationship("Event", back_populates="teams")
    members = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.added_at",
    )

    @property
    def joined_count(self) -> int:
        return sum(1 for m in self.members if m.status == MemberStatus.joined)


class TeamMember(Base):
    __tablename__ = "team_members"

    team_id = Column(String(36), ForeignKey("teams.team_id", ondelete="CASCADE"), primary_key=True)
    participant_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="CASCADE"), primary_key=True)
    status = Column(SAEnum(MemberStatus), nullable=False, default=MemberStatus.invited)
    added_at = Column(UTCDateTime, nullable=False, default=utcnow)
    joined_at = Column(UTCDateTime, nullable=True)

    team = relationship("Team", back_populates="members")
    participant = relationship("Participant")
