# mentormatch/models/__init__.py
# Import models in dependency order
from .user import ApplicationStatus, User, UserProfile, UserRole
from .match import DECLINED_STATUSES, OPEN_STATUSES, MatchStatus, MatchSuggestion
from .mentorship import Mentorship, MentorshipStatus
from .audit import MatchAudit
from .notification import Notification

__all__ = [
    "ApplicationStatus",
    "User",
    "UserProfile",
    "UserRole",
    "DECLINED_STATUSES",
    "OPEN_STATUSES",
    "MatchStatus",
    "MatchSuggestion",
    "Mentorship",
    "MentorshipStatus",
    "MatchAudit",
    "Notification",
]
