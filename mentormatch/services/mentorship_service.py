# mentormatch/services/mentorship_service.py
"""
Mentorship Service

Admin management of connected pairs. Ending a mentorship (completed or
cancelled) hands the mentor's capacity slot back; reopening one takes a slot
again and fails when the mentor is already full. The status change, the
capacity counter, the audit row and the notifications share one commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from mentormatch import models
from mentormatch.crud import match as match_crud
from mentormatch.crud import mentorship as mentorship_crud
from mentormatch.crud import user as user_crud
from mentormatch.exceptions import CapacityExceededError, InvalidStateError, MatchingError, NotFoundError
from mentormatch.models.mentorship import SLOT_HOLDING_STATUSES, MentorshipStatus
from mentormatch.services import notification_service
from mentormatch.utils.clock import utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("notes", "goals", "program")


@dataclass
class MentorshipUpdate:
    mentorship: models.Mentorship
    changed: bool = False
    capacity_delta: int = 0


def capacity_delta(previous: MentorshipStatus, target: MentorshipStatus) -> int:
    """+1 when the pair starts holding a slot, -1 when it stops, else 0."""
    held_before = MentorshipStatus(previous) in SLOT_HOLDING_STATUSES
    held_after = MentorshipStatus(target) in SLOT_HOLDING_STATUSES
    return int(held_after) - int(held_before)


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _active_count(db: Session, mentor_id: int) -> int:
    return int(db.query(models.User.active_mentees_count).filter(
        models.User.id == mentor_id
    ).scalar() or 0)


def get_mentorship(db: Session, mentorship_id: int) -> models.Mentorship:
    mentorship = mentorship_crud.get_mentorship(db, mentorship_id)
    if mentorship is None:
        raise NotFoundError("Mentorship not found", code="MENTORSHIP_NOT_FOUND")
    return mentorship


def get_mentorship_detail(db: Session, mentorship_id: int) -> Tuple[models.Mentorship, List[models.MatchAudit]]:
    mentorship = get_mentorship(db, mentorship_id)
    return mentorship, mentorship_crud.list_audits(db, mentorship_id)


def list_mentorships(
    db: Session,
    *,
    status: Optional[MentorshipStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[models.Mentorship], int]:
    page = max(1, page)
    return mentorship_crud.list_mentorships(
        db,
        status=status,
        search=(search or "").strip() or None,
        offset=(page - 1) * limit,
        limit=limit,
    )


def _status_notifications(
    db: Session,
    mentorship: models.Mentorship,
    status: MentorshipStatus,
    admin_id: int,
    reason: Optional[str],
) -> List[models.Notification]:
    suffix = f" Reason: {reason}" if reason else ""
    parties = (
        (mentorship.mentor_id, mentorship.mentee.name if mentorship.mentee else "your mentee"),
        (mentorship.mentee_id, mentorship.mentor.name if mentorship.mentor else "your mentor"),
    )
    return [
        notification_service.create_notification(
            db,
            recipient_id=recipient_id,
            actor_id=admin_id,
            match_suggestion_id=mentorship.match_suggestion_id,
            event_type="mentorship_status",
            title=f"Mentorship {status.value}",
            message=f"Your mentorship with {other_name} is now {status.value}.{suffix}",
        )
        for recipient_id, other_name in parties
    ]


def update_mentorship(
    db: Session,
    mentorship_id: int,
    admin_id: int,
    changes: Dict[str, Any],
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MentorshipUpdate:
    """
    Apply an admin edit to a mentorship.

    ``changes`` holds only the fields the admin sent: ``status`` and any of
    ``notes``, ``goals``, ``program`` (blank text clears the field).

    Raises:
        NotFoundError: Unknown mentorship
        CapacityExceededError: Reopening a pair for a mentor with no free slot
        InvalidStateError: Status changed underneath this request
    """
    now = now or utcnow()
    reason = _clean_text(reason)
    mentorship = get_mentorship(db, mentorship_id)

    previous = MentorshipStatus(mentorship.status)
    target = MentorshipStatus(changes["status"]) if changes.get("status") is not None else previous
    field_updates = {
        name: _clean_text(changes[name])
        for name in EDITABLE_FIELDS
        if name in changes and _clean_text(changes[name]) != getattr(mentorship, name)
    }
    status_changed = target != previous
    if not status_changed and not field_updates:
        return MentorshipUpdate(mentorship=mentorship)

    delta = capacity_delta(previous, target) if status_changed else 0
    capacity_before = capacity_after = None
    notifications: List[models.Notification] = []
    try:
        if status_changed:
            if not mentorship_crud.compare_and_set_status(db, mentorship.id, previous, target):
                db.rollback()
                raise InvalidStateError(
                    "Mentorship was updated by another request",
                    code="MENTORSHIP_CONFLICT",
                )
            if delta:
                capacity_before = _active_count(db, mentorship.mentor_id)
                if delta > 0:
                    if not user_crud.try_reserve_mentor_slot(db, mentorship.mentor_id):
                        db.rollback()
                        raise CapacityExceededError("Mentor capacity reached")
                elif not user_crud.release_mentor_slot(db, mentorship.mentor_id):
                    logger.warning(
                        "Mentor %s had no active slot to release for mentorship %s",
                        mentorship.mentor_id,
                        mentorship.id,
                    )
                capacity_after = _active_count(db, mentorship.mentor_id)
            set_committed_value(mentorship, "status", target.value)

        for name, value in field_updates.items():
            setattr(mentorship, name, value)
        mentorship.updated_at = now

        match_crud.create_audit(
            db,
            suggestion_id=None,
            mentorship_id=mentorship.id,
            actor_id=admin_id,
            actor_role="admin",
            action=f"mentorship_{target.value}" if status_changed else "mentorship_update",
            reason=reason,
            capacity_before=capacity_before,
            capacity_after=capacity_after,
        )
        if status_changed:
            notifications = _status_notifications(db, mentorship, target, admin_id, reason)
        db.commit()
    except MatchingError:
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(mentorship)
    notification_service.dispatch_all(db, notifications)
    logger.info(
        "Admin %s updated mentorship %s (%s -> %s, capacity %+d)",
        admin_id,
        mentorship.id,
        previous.value,
        target.value,
        delta,
    )
    return MentorshipUpdate(mentorship=mentorship, changed=True, capacity_delta=delta)


def list_mentor_capacities(db: Session) -> List[models.User]:
    return user_crud.list_mentors(db)
