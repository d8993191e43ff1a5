import enum
from datetime import datetime

from sqlalchemy import (
    ARRAY,
    JSON,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from mentormatch.config import settings
from mentormatch.database import Base


class UserRole(str, enum.Enum):
    MENTEE = "mentee"
    MENTOR = "mentor"
    ADMIN = "admin"


class ApplicationStatus(str, enum.Enum):
    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# SQLite (used by tests) does not support ARRAY; store as JSON there.
StringList = ARRAY(String).with_variant(JSON, "sqlite")


# ---------------- USER (AUTH TABLE) ----------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    application_status = Column(
        String(20),
        nullable=False,
        default=ApplicationStatus.PENDING.value,
        index=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    approved_at = Column(TIMESTAMP, nullable=True)

    # Mentor-only capacity bookkeeping
    mentor_capacity = Column(
        Integer,
        nullable=False,
        default=lambda: settings.MATCH_DEFAULT_MENTOR_CAPACITY,
    )
    active_mentees_count = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("mentor_capacity >= 1", name="check_mentor_capacity_positive"),
        CheckConstraint("active_mentees_count >= 0", name="check_active_mentees_non_negative"),
    )

    profile = relationship("UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def is_approved(self) -> bool:
        return self.application_status == ApplicationStatus.APPROVED.value

    @property
    def remaining_slots(self) -> int:
        return max((self.mentor_capacity or 0) - (self.active_mentees_count or 0), 0)

    @property
    def capacity_reached(self) -> bool:
        return (self.active_mentees_count or 0) >= (self.mentor_capacity or 0)


# ---------------- PROFILE TABLE ----------------
class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: int = Column(Integer, primary_key=True)
    user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    display_name: str = Column(String(100))
    bio: str = Column(String(500))
    program: str = Column(String(150))
    major: str = Column(String(150))
    expertise_areas: list = Column(StringList, default=list)   # ← mentors
    skills: list = Column(StringList, default=list)
    interests: list = Column(StringList, default=list)
    mentoring_goals: str = Column(Text)                        # ← mentees, comma separated
    # [{"day": "mon", "start": "09:00", "end": "11:00"}, ...]
    availability_slots: list = Column(JSON, default=list)
    priority: str = Column(String(20))                         # ← mentees: high/medium/low or 0-100
    created_at: datetime = Column(TIMESTAMP, server_default=func.now())
    updated_at: datetime = Column(
        TIMESTAMP,
        server_default=func.now(),
        onupdate=func.now()
    )

    user = relationship("User", back_populates="profile")
