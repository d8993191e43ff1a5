# mentormatch/schemas/mentorship.py
"""
Mentorship Pydantic Schemas
Admin views of connected pairs and mentor capacity
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mentormatch.models.match import MatchStatus
from mentormatch.models.mentorship import MentorshipStatus


# ======================
# PAIRINGS
# ======================

class PairingParty(BaseModel):
    """One side of a pairing; the capacity fields only matter for the mentor"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    application_status: Optional[str] = None
    mentor_capacity: Optional[int] = None
    active_mentees_count: Optional[int] = None


class PairingMatch(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: MatchStatus
    score: int


class PairingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: MentorshipStatus
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    goals: Optional[str] = None
    program: Optional[str] = None
    notes: Optional[str] = None
    mentor: Optional[PairingParty] = None
    mentee: Optional[PairingParty] = None
    match_suggestion: Optional[PairingMatch] = None


class PairingListMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    status: Optional[MentorshipStatus] = None
    search: Optional[str] = None


class PairingList(BaseModel):
    pairings: List[PairingResponse]
    meta: PairingListMeta


class PairingAuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    actor_id: Optional[int] = None
    actor_role: str
    reason: Optional[str] = None
    capacity_before: Optional[int] = None
    capacity_after: Optional[int] = None
    created_at: Optional[datetime] = None


class PairingDetail(BaseModel):
    pairing: PairingResponse
    audit_trail: List[PairingAuditEntry]


class PairingUpdate(BaseModel):
    """Only the fields sent are applied; blank text clears a field"""
    status: Optional[MentorshipStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)
    goals: Optional[str] = Field(None, max_length=500)
    program: Optional[str] = Field(None, max_length=150)
    reason: Optional[str] = Field(None, max_length=1000)


class PairingUpdateResponse(BaseModel):
    pairing: PairingResponse
    unchanged: bool = False
    capacity_delta: int = 0


# ======================
# CAPACITY
# ======================

class MentorCapacity(BaseModel):
    id: int
    name: str
    email: str
    capacity: int
    active_mentees: int
    remaining_slots: int


class MentorCapacityList(BaseModel):
    mentors: List[MentorCapacity]
    count: int
