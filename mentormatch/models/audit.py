from sqlalchemy import TIMESTAMP, Column, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from mentormatch.database import Base


class MatchAudit(Base):
    """Append-only log of match and mentorship lifecycle events."""

    __tablename__ = "match_audits"

    id = Column(Integer, primary_key=True, index=True)
    match_suggestion_id = Column(
        Integer,
        ForeignKey("match_suggestions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # Set for admin changes to a connected pair
    mentorship_id = Column(
        Integer,
        ForeignKey("mentorships.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_role = Column(String(20), nullable=False)    # mentor / mentee / admin / system
    action = Column(String(30), nullable=False, index=True)
    reason = Column(Text)
    capacity_before = Column(Integer)
    capacity_after = Column(Integer)
    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)

    match_suggestion = relationship("MatchSuggestion")
    mentorship = relationship("Mentorship")
