# mentormatch/schemas/__init__.py

from .auth import LoginRequest, RegisterRequest, Token, TokenData
from .user import AvailabilitySlot, CapacityUpdate, User, UserProfile, UserProfileUpdate
from .notification import NotificationInbox, NotificationResponse
from .mentorship import (
    MentorCapacity,
    MentorCapacityList,
    PairingDetail,
    PairingList,
    PairingResponse,
    PairingUpdate,
    PairingUpdateResponse,
)
from .match import (
    BackfillResponse,
    BackfillRun,
    DeclineRequest,
    GenerateRequest,
    GenerateResponse,
    MatchDetailResponse,
    MatchSuggestionResponse,
    MenteeSuggestionList,
    MenteeSuggestionMeta,
    MentorAcceptRequest,
    MentorshipResponse,
    MentorSuggestionList,
    MentorSuggestionMeta,
    ScoreBreakdown,
    TransitionResponse,
)

__all__ = [
    "LoginRequest",
    "RegisterRequest",
    "Token",
    "TokenData",
    "AvailabilitySlot",
    "CapacityUpdate",
    "User",
    "UserProfile",
    "UserProfileUpdate",
    "NotificationInbox",
    "NotificationResponse",
    "MentorCapacity",
    "MentorCapacityList",
    "PairingDetail",
    "PairingList",
    "PairingResponse",
    "PairingUpdate",
    "PairingUpdateResponse",
    "BackfillResponse",
    "BackfillRun",
    "DeclineRequest",
    "GenerateRequest",
    "GenerateResponse",
    "MatchDetailResponse",
    "MatchSuggestionResponse",
    "MenteeSuggestionList",
    "MenteeSuggestionMeta",
    "MentorAcceptRequest",
    "MentorshipResponse",
    "MentorSuggestionList",
    "MentorSuggestionMeta",
    "ScoreBreakdown",
    "TransitionResponse",
]
