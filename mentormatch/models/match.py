# mentormatch/models/match.py
import enum

from sqlalchemy import JSON, TIMESTAMP, Column, Enum, ForeignKey, Index, Integer, Text, func, text
from sqlalchemy.orm import relationship

from mentormatch.database import Base


class MatchStatus(str, enum.Enum):
    SUGGESTED = "suggested"
    MENTOR_ACCEPTED = "mentor_accepted"
    MENTOR_DECLINED = "mentor_declined"
    MENTEE_ACCEPTED = "mentee_accepted"
    MENTEE_DECLINED = "mentee_declined"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONNECTED = "connected"

    @property
    def is_terminal(self) -> bool:
        return self not in OPEN_STATUSES


OPEN_STATUSES = frozenset({
    MatchStatus.SUGGESTED,
    MatchStatus.MENTOR_ACCEPTED,
    MatchStatus.MENTEE_ACCEPTED,
})

DECLINED_STATUSES = frozenset({
    MatchStatus.MENTOR_DECLINED,
    MatchStatus.MENTEE_DECLINED,
    MatchStatus.REJECTED,
})

_OPEN_STATUS_SQL = "status IN ('suggested', 'mentor_accepted', 'mentee_accepted')"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class MatchSuggestion(Base):
    __tablename__ = "match_suggestions"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mentee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)
    expertise_score = Column(Integer, nullable=False, default=0)
    availability_score = Column(Integer, nullable=False, default=0)
    interaction_score = Column(Integer, nullable=False, default=0)
    priority_score = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(MatchStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=MatchStatus.SUGGESTED,
        index=True,
    )
    notes = Column(Text)
    details = Column(JSON, default=dict)
    mentee_snapshot = Column(JSON, default=dict)
    mentor_snapshot = Column(JSON, default=dict)
    expires_at = Column(TIMESTAMP, nullable=True, index=True)
    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # At most one open suggestion per (mentor, mentee) pair.
        Index(
            "ux_match_suggestions_open_pair",
            "mentor_id",
            "mentee_id",
            unique=True,
            sqlite_where=text(_OPEN_STATUS_SQL),
            postgresql_where=text(_OPEN_STATUS_SQL),
        ),
        Index("ix_match_suggestions_mentor_status", "mentor_id", "status"),
    )

    mentor = relationship("User", foreign_keys=[mentor_id])
    mentee = relationship("User", foreign_keys=[mentee_id])

    @property
    def score_breakdown(self) -> dict:
        return {
            "expertise": self.expertise_score,
            "availability": self.availability_score,
            "interactions": self.interaction_score,
            "priority": self.priority_score,
        }

    @property
    def is_open(self) -> bool:
        return MatchStatus(self.status) in OPEN_STATUSES
