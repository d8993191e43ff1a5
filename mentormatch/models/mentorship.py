import enum

from sqlalchemy import TIMESTAMP, Column, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from mentormatch.database import Base


class MentorshipStatus(str, enum.Enum):
    """Active and paused mentorships hold one of the mentor's capacity slots."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Mentorship(Base):
    __tablename__ = "mentorships"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mentee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    match_suggestion_id = Column(
        Integer,
        ForeignKey("match_suggestions.id", ondelete="SET NULL"),
        nullable=True,
    )
    status = Column(String(20), nullable=False, default=MentorshipStatus.ACTIVE.value)
    goals = Column(String(500))
    program = Column(String(150))
    notes = Column(Text)
    started_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("mentor_id", "mentee_id", name="uq_mentorship_pair"),
    )

    mentor = relationship("User", foreign_keys=[mentor_id])
    mentee = relationship("User", foreign_keys=[mentee_id])
    match_suggestion = relationship("MatchSuggestion")


SLOT_HOLDING_STATUSES = frozenset({MentorshipStatus.ACTIVE, MentorshipStatus.PAUSED})
