# mentormatch/schemas/match.py
"""
Match Pydantic Schemas
Request/response models for match suggestions and lifecycle transitions
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ======================
# SCORE
# ======================

class ScoreBreakdown(BaseModel):
    """Four-part score breakdown, each 0-100"""
    expertise: int = Field(..., ge=0, le=100)
    availability: int = Field(..., ge=0, le=100)
    interactions: int = Field(..., ge=0, le=100)
    priority: int = Field(..., ge=0, le=100)


# ======================
# SUGGESTION RESPONSE
# ======================

class MatchSuggestionResponse(BaseModel):
    """A scored mentor-mentee suggestion"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    mentor_id: int
    mentee_id: int
    score: int = Field(..., ge=0, le=100, description="Weighted match score (0-100)")
    score_breakdown: ScoreBreakdown
    status: str
    notes: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    mentee: Dict[str, Any] = Field(default_factory=dict, description="Mentee preview")
    mentor: Dict[str, Any] = Field(default_factory=dict, description="Mentor preview")
    mentor_capacity_reached: bool = False
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MentorshipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    mentor_id: int
    mentee_id: int
    match_suggestion_id: Optional[int] = None
    status: str
    goals: Optional[str] = None
    program: Optional[str] = None
    notes: Optional[str] = None
    started_at: Optional[datetime] = None


# ======================
# LIST RESPONSES
# ======================

class MentorSuggestionMeta(BaseModel):
    count: int
    capacity: Optional[int] = None
    active_mentees: Optional[int] = None
    remaining_slots: Optional[int] = None
    capacity_reached: bool = False


class MenteeSuggestionMeta(BaseModel):
    count: int
    awaiting_mentee: int = Field(0, description="Mentor accepted, waiting on the mentee")
    awaiting_mentor: int = Field(0, description="Suggested, waiting on the mentor")


class MentorSuggestionList(BaseModel):
    suggestions: List[MatchSuggestionResponse]
    meta: MentorSuggestionMeta


class MenteeSuggestionList(BaseModel):
    suggestions: List[MatchSuggestionResponse]
    meta: MenteeSuggestionMeta


class MatchDetailResponse(BaseModel):
    match: MatchSuggestionResponse


# ======================
# TRANSITIONS
# ======================

class MentorAcceptRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class TransitionResponse(BaseModel):
    match: MatchSuggestionResponse
    mentorship: Optional[MentorshipResponse] = None


# ======================
# GENERATION
# ======================

class GenerateRequest(BaseModel):
    """Trigger the candidate generator for one subject, or everyone (admin)"""
    mentor_id: Optional[int] = None
    mentee_id: Optional[int] = None
    limit: Optional[int] = Field(None, ge=1, le=50)


class GenerateResponse(BaseModel):
    matches: List[MatchSuggestionResponse]
    created: int
    updated: int
    capacity_reached: bool = False


class BackfillRun(BaseModel):
    mentor_id: int
    generated: int = 0
    created: int = 0
    updated: int = 0
    error: Optional[str] = None


class BackfillResponse(BaseModel):
    runs: List[BackfillRun]
    mentors_processed: int
    created: int
    updated: int
    expired: int
    failures: int
