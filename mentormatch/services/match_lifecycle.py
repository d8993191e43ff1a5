# mentormatch/services/match_lifecycle.py
"""
Match Lifecycle Service

Moves suggestions through the match state machine:

    suggested -> mentor_accepted | mentor_declined | expired | rejected
    mentor_accepted -> mentee_accepted | mentee_declined | expired | rejected
    mentee_accepted -> connected

Every status change is a compare-and-set UPDATE on the current status, so two
requests racing on one suggestion cannot both win. ``mentee_accept`` takes a
mentor capacity slot with a single conditional UPDATE in the same transaction
that connects the suggestion and creates the Mentorship.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from mentormatch import models
from mentormatch.crud import match as match_crud
from mentormatch.crud import user as user_crud
from mentormatch.exceptions import (
    CapacityExceededError,
    InvalidStateError,
    MatchingError,
    NotFoundError,
)
from mentormatch.models.match import MatchStatus
from mentormatch.models.mentorship import MentorshipStatus
from mentormatch.services import notification_service
from mentormatch.utils.clock import utcnow

logger = logging.getLogger(__name__)


class MatchAction(str, enum.Enum):
    MENTOR_ACCEPT = "mentor_accept"
    MENTOR_DECLINE = "mentor_decline"
    MENTEE_ACCEPT = "mentee_accept"
    MENTEE_DECLINE = "mentee_decline"
    EXPIRE = "expire"
    REJECT = "reject"
    CONNECT = "connect"


TRANSITIONS: Dict[MatchStatus, Dict[MatchAction, MatchStatus]] = {
    MatchStatus.SUGGESTED: {
        MatchAction.MENTOR_ACCEPT: MatchStatus.MENTOR_ACCEPTED,
        MatchAction.MENTOR_DECLINE: MatchStatus.MENTOR_DECLINED,
        MatchAction.EXPIRE: MatchStatus.EXPIRED,
        MatchAction.REJECT: MatchStatus.REJECTED,
    },
    MatchStatus.MENTOR_ACCEPTED: {
        MatchAction.MENTEE_ACCEPT: MatchStatus.MENTEE_ACCEPTED,
        MatchAction.MENTEE_DECLINE: MatchStatus.MENTEE_DECLINED,
        MatchAction.EXPIRE: MatchStatus.EXPIRED,
        MatchAction.REJECT: MatchStatus.REJECTED,
    },
    MatchStatus.MENTEE_ACCEPTED: {
        MatchAction.CONNECT: MatchStatus.CONNECTED,
    },
}

# Audit log action names
AUDIT_ACTIONS = {
    MatchAction.MENTOR_ACCEPT: "mentor_accept",
    MatchAction.MENTOR_DECLINE: "mentor_decline",
    MatchAction.MENTEE_ACCEPT: "mentee_accept",
    MatchAction.MENTEE_DECLINE: "mentee_decline",
    MatchAction.EXPIRE: "expired",
    MatchAction.REJECT: "rejected",
    MatchAction.CONNECT: "connected",
}

EXPIRABLE_STATUSES = frozenset(match_crud.EXPIRABLE_STATUSES)


@dataclass
class TransitionResult:
    suggestion: models.MatchSuggestion
    mentorship: Optional[models.Mentorship] = None

    @property
    def status(self) -> MatchStatus:
        return MatchStatus(self.suggestion.status)


# =====================================
# STATE MACHINE
# =====================================

def next_status(current: MatchStatus, action: MatchAction) -> MatchStatus:
    """Look up the target status or raise InvalidStateError."""
    current = MatchStatus(current)
    target = TRANSITIONS.get(current, {}).get(action)
    if target is None:
        raise InvalidStateError(
            f"Cannot {action.value.replace('_', ' ')} a match in status '{current.value}'",
            code="MATCH_NOT_ACTIONABLE",
        )
    return target


def can_transition(current: MatchStatus, action: MatchAction) -> bool:
    return action in TRANSITIONS.get(MatchStatus(current), {})


def is_stale(suggestion: models.MatchSuggestion, now: datetime) -> bool:
    return (
        MatchStatus(suggestion.status) in EXPIRABLE_STATUSES
        and suggestion.expires_at is not None
        and suggestion.expires_at <= now
    )


# =====================================
# INTERNAL HELPERS
# =====================================

def _load_for_actor(
    db: Session,
    suggestion_id: int,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
) -> models.MatchSuggestion:
    suggestion = match_crud.get_suggestion(db, suggestion_id)
    if (
        suggestion is None
        or (mentor_id is not None and suggestion.mentor_id != mentor_id)
        or (mentee_id is not None and suggestion.mentee_id != mentee_id)
    ):
        raise NotFoundError("Match not found", code="MATCH_NOT_FOUND")
    return suggestion


def _set_status(
    db: Session,
    suggestion: models.MatchSuggestion,
    action: MatchAction,
    *,
    actor_id: Optional[int],
    actor_role: str,
    reason: Optional[str] = None,
    capacity_before: Optional[int] = None,
    capacity_after: Optional[int] = None,
    **values,
) -> MatchStatus:
    """Compare-and-set one transition and stage its audit row. Does not commit."""
    current = MatchStatus(suggestion.status)
    target = next_status(current, action)
    if not match_crud.compare_and_set_status(db, suggestion.id, current, target, **values):
        db.rollback()
        raise InvalidStateError(
            "Match was updated by another request",
            code="MATCH_CONFLICT",
        )
    match_crud.create_audit(
        db,
        suggestion_id=suggestion.id,
        actor_id=actor_id,
        actor_role=actor_role,
        action=AUDIT_ACTIONS[action],
        reason=reason,
        capacity_before=capacity_before,
        capacity_after=capacity_after,
    )
    # Later CAS steps in the same transaction read the new status.
    set_committed_value(suggestion, "status", target)
    return target


def _expire_one(db: Session, suggestion: models.MatchSuggestion) -> bool:
    expired = match_crud.compare_and_set_status(
        db, suggestion.id, MatchStatus(suggestion.status), MatchStatus.EXPIRED
    )
    if expired:
        match_crud.create_audit(
            db,
            suggestion_id=suggestion.id,
            actor_id=None,
            actor_role="system",
            action=AUDIT_ACTIONS[MatchAction.EXPIRE],
        )
        set_committed_value(suggestion, "status", MatchStatus.EXPIRED)
    return expired


def _guard(
    db: Session,
    suggestion: models.MatchSuggestion,
    action: MatchAction,
    now: datetime,
) -> None:
    """Lazily expire a stale suggestion, then validate the transition."""
    if is_stale(suggestion, now):
        _expire_one(db, suggestion)
        db.commit()
        raise InvalidStateError("Match suggestion expired", code="MATCH_EXPIRED")
    next_status(MatchStatus(suggestion.status), action)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _with_reason(suggestion: models.MatchSuggestion, key: str, reason: Optional[str]) -> dict:
    details = dict(suggestion.details or {})
    if reason:
        details[key] = reason
    return details


def _commit_and_dispatch(
    db: Session,
    suggestion: models.MatchSuggestion,
    notifications: List[models.Notification],
) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(suggestion)
    notification_service.dispatch_all(db, notifications)


# =====================================
# EXPIRY
# =====================================

def expire_stale_suggestions(
    db: Session,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> int:
    """
    Move suggested/mentor_accepted rows past their TTL to expired.

    Returns:
        Number of suggestions expired
    """
    now = now or utcnow()
    expired = 0
    for suggestion in match_crud.list_stale_suggestions(
        db, now, mentor_id=mentor_id, mentee_id=mentee_id
    ):
        if _expire_one(db, suggestion):
            expired += 1
    if commit:
        db.commit()
    if expired:
        logger.info(
            "Expired %s stale match suggestions (mentor_id=%s, mentee_id=%s)",
            expired,
            mentor_id,
            mentee_id,
        )
    return expired


# =====================================
# MENTOR TRANSITIONS
# =====================================

def mentor_accept(
    db: Session,
    suggestion_id: int,
    mentor_id: int,
    note: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Mentor accepts a suggested mentee.

    Raises:
        NotFoundError: Unknown suggestion or not this mentor's
        InvalidStateError: Suggestion is not in ``suggested``
        CapacityExceededError: Mentor has no free slots right now
    """
    now = now or utcnow()
    suggestion = _load_for_actor(db, suggestion_id, mentor_id=mentor_id)
    _guard(db, suggestion, MatchAction.MENTOR_ACCEPT, now)

    mentor = user_crud.get_user(db, mentor_id)
    if mentor is None:
        raise NotFoundError("Mentor not found", code="MENTOR_NOT_AVAILABLE")
    if mentor.capacity_reached:
        raise CapacityExceededError("Mentor capacity reached")

    values = {}
    note = _clean_text(note)
    if note:
        values["notes"] = note
    _set_status(
        db,
        suggestion,
        MatchAction.MENTOR_ACCEPT,
        actor_id=mentor_id,
        actor_role="mentor",
        capacity_before=mentor.active_mentees_count,
        capacity_after=mentor.active_mentees_count,
        **values,
    )
    notification = notification_service.create_notification(
        db,
        recipient_id=suggestion.mentee_id,
        actor_id=mentor_id,
        match_suggestion_id=suggestion.id,
        event_type="match_response",
        title="Mentor accepted your match",
        message="Your mentor accepted the match. Please confirm to finalize.",
    )
    _commit_and_dispatch(db, suggestion, [notification])
    return TransitionResult(suggestion=suggestion)


def mentor_decline(
    db: Session,
    suggestion_id: int,
    mentor_id: int,
    reason: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> TransitionResult:
    now = now or utcnow()
    suggestion = _load_for_actor(db, suggestion_id, mentor_id=mentor_id)
    _guard(db, suggestion, MatchAction.MENTOR_DECLINE, now)

    reason = _clean_text(reason)
    _set_status(
        db,
        suggestion,
        MatchAction.MENTOR_DECLINE,
        actor_id=mentor_id,
        actor_role="mentor",
        reason=reason,
        details=_with_reason(suggestion, "decline_reason", reason),
    )
    notification = notification_service.create_notification(
        db,
        recipient_id=suggestion.mentee_id,
        actor_id=mentor_id,
        match_suggestion_id=suggestion.id,
        event_type="match_declined",
        title="Mentor declined the match",
        message="This mentor declined the suggestion. We will find another match for you soon.",
    )
    _commit_and_dispatch(db, suggestion, [notification])
    return TransitionResult(suggestion=suggestion)


# =====================================
# MENTEE TRANSITIONS
# =====================================

def mentee_accept(
    db: Session,
    suggestion_id: int,
    mentee_id: int,
    *,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Mentee confirms a mentor-accepted match and the pair is connected.

    One transaction: reserve a mentor slot (conditional increment), move
    mentor_accepted -> mentee_accepted -> connected, create the Mentorship.
    Any failure rolls all of it back and the suggestion stays
    ``mentor_accepted``.

    Raises:
        NotFoundError: Unknown suggestion or not this mentee's
        InvalidStateError: Suggestion is not in ``mentor_accepted``
        CapacityExceededError: Mentor filled up before this acceptance
    """
    now = now or utcnow()
    suggestion = _load_for_actor(db, suggestion_id, mentee_id=mentee_id)
    _guard(db, suggestion, MatchAction.MENTEE_ACCEPT, now)
    mentor_id = suggestion.mentor_id

    try:
        if not user_crud.try_reserve_mentor_slot(db, mentor_id):
            db.rollback()
            raise CapacityExceededError("Mentor capacity reached")
        active_after = db.query(models.User.active_mentees_count).filter(
            models.User.id == mentor_id
        ).scalar()

        _set_status(
            db,
            suggestion,
            MatchAction.MENTEE_ACCEPT,
            actor_id=mentee_id,
            actor_role="mentee",
        )
        _set_status(
            db,
            suggestion,
            MatchAction.CONNECT,
            actor_id=mentee_id,
            actor_role="system",
            capacity_before=active_after - 1,
            capacity_after=active_after,
        )

        mentee_snapshot = suggestion.mentee_snapshot or {}
        mentorship = models.Mentorship(
            mentor_id=mentor_id,
            mentee_id=mentee_id,
            match_suggestion_id=suggestion.id,
            status=MentorshipStatus.ACTIVE.value,
            goals=(mentee_snapshot.get("goals") or None),
            program=(mentee_snapshot.get("program") or None),
            started_at=now,
        )
        db.add(mentorship)
        db.flush()

        notifications = [
            notification_service.create_notification(
                db,
                recipient_id=mentor_id,
                actor_id=mentee_id,
                match_suggestion_id=suggestion.id,
                event_type="match_confirmed",
                title="Mentorship confirmed",
                message="You and your mentee both accepted. A mentorship connection has been created.",
            ),
            notification_service.create_notification(
                db,
                recipient_id=mentee_id,
                actor_id=mentor_id,
                match_suggestion_id=suggestion.id,
                event_type="match_confirmed",
                title="Mentor confirmed!",
                message="Your mentor accepted your request. You are now officially matched.",
            ),
        ]
        db.commit()
    except MatchingError:
        raise
    except IntegrityError:
        db.rollback()
        raise InvalidStateError(
            "A mentorship already exists for this pair",
            code="MENTORSHIP_EXISTS",
        )
    except Exception:
        db.rollback()
        raise

    db.refresh(suggestion)
    db.refresh(mentorship)
    notification_service.dispatch_all(db, notifications)
    logger.info(
        "Match %s connected (mentor_id=%s, mentee_id=%s, active_mentees=%s)",
        suggestion.id,
        mentor_id,
        mentee_id,
        active_after,
    )
    return TransitionResult(suggestion=suggestion, mentorship=mentorship)


def mentee_decline(
    db: Session,
    suggestion_id: int,
    mentee_id: int,
    reason: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> TransitionResult:
    now = now or utcnow()
    suggestion = _load_for_actor(db, suggestion_id, mentee_id=mentee_id)
    _guard(db, suggestion, MatchAction.MENTEE_DECLINE, now)

    reason = _clean_text(reason)
    _set_status(
        db,
        suggestion,
        MatchAction.MENTEE_DECLINE,
        actor_id=mentee_id,
        actor_role="mentee",
        reason=reason,
        details=_with_reason(suggestion, "decline_reason", reason),
    )
    notification = notification_service.create_notification(
        db,
        recipient_id=suggestion.mentor_id,
        actor_id=mentee_id,
        match_suggestion_id=suggestion.id,
        event_type="match_declined",
        title="Mentee declined the match",
        message="The mentee declined this match suggestion. We will look for another candidate soon.",
    )
    _commit_and_dispatch(db, suggestion, [notification])
    return TransitionResult(suggestion=suggestion)


# =====================================
# ADMIN TRANSITIONS
# =====================================

def reject_suggestion(
    db: Session,
    suggestion_id: int,
    admin_id: int,
    reason: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Admin withdraws a suggestion that has not been connected yet."""
    now = now or utcnow()
    suggestion = _load_for_actor(db, suggestion_id)
    _guard(db, suggestion, MatchAction.REJECT, now)

    reason = _clean_text(reason)
    _set_status(
        db,
        suggestion,
        MatchAction.REJECT,
        actor_id=admin_id,
        actor_role="admin",
        reason=reason,
        details=_with_reason(suggestion, "reject_reason", reason),
    )
    notifications = [
        notification_service.create_notification(
            db,
            recipient_id=recipient_id,
            actor_id=admin_id,
            match_suggestion_id=suggestion.id,
            event_type="match_declined",
            title="Match withdrawn",
            message="A program administrator withdrew this match suggestion.",
        )
        for recipient_id in (suggestion.mentor_id, suggestion.mentee_id)
    ]
    _commit_and_dispatch(db, suggestion, notifications)
    return TransitionResult(suggestion=suggestion)
