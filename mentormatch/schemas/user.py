from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AvailabilitySlot(BaseModel):
    day: str
    start: Optional[str] = Field(None, pattern=_TIME_PATTERN, description="HH:MM, 24h")
    end: Optional[str] = Field(None, pattern=_TIME_PATTERN, description="HH:MM, 24h")

    @field_validator("day")
    @classmethod
    def _normalize_day(cls, value: str) -> str:
        day = value.strip().lower()[:3]
        if day not in WEEKDAYS:
            raise ValueError(f"day must be one of {', '.join(WEEKDAYS)}")
        return day


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    display_name: Optional[str] = None
    bio: Optional[str] = None
    program: Optional[str] = None
    major: Optional[str] = None
    expertise_areas: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    mentoring_goals: Optional[str] = None
    availability_slots: List[AvailabilitySlot] = Field(default_factory=list)
    priority: Optional[str] = None


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    program: Optional[str] = Field(None, max_length=150)
    major: Optional[str] = Field(None, max_length=150)
    expertise_areas: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    mentoring_goals: Optional[str] = None
    availability_slots: Optional[List[AvailabilitySlot]] = None
    priority: Optional[Union[int, str]] = None

    @field_validator("priority")
    @classmethod
    def _normalize_priority(cls, value):
        if value is None:
            return None
        if isinstance(value, int):
            if not 0 <= value <= 100:
                raise ValueError("numeric priority must be between 0 and 100")
            return str(value)
        normalized = value.strip().lower()
        if normalized not in {"high", "urgent", "medium", "low"}:
            raise ValueError("priority must be high, urgent, medium, low or 0-100")
        return normalized


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    role: str
    application_status: str
    is_active: bool
    mentor_capacity: Optional[int] = None
    active_mentees_count: Optional[int] = None
    created_at: Optional[datetime] = None
    profile: Optional[UserProfile] = None


class CapacityUpdate(BaseModel):
    capacity: int = Field(..., ge=1, le=50)
