"""Domain errors raised by the matching engine.

Each error carries the HTTP status the API layer should answer with and a
machine-readable ``code`` that clients can switch on.
"""

from typing import Optional


class MatchingError(Exception):
    """Base class for matching engine errors."""

    status_code = 400
    default_code = "MATCHING_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(MatchingError):
    """Unknown mentor, mentee or suggestion id."""

    status_code = 404
    default_code = "NOT_FOUND"


class InvalidStateError(MatchingError):
    """Transition not allowed from the suggestion's current status."""

    status_code = 409
    default_code = "INVALID_STATE"


class CapacityExceededError(MatchingError):
    """Mentor has no free mentee slots."""

    status_code = 409
    default_code = "MENTOR_CAPACITY_REACHED"


class ValidationError(MatchingError):
    """Malformed matching input or configuration."""

    status_code = 422
    default_code = "VALIDATION_ERROR"
