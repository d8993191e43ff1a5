# mentormatch/api/admin.py
"""
Admin Module
Admin-only endpoints for reviewing applications, mentor capacity, connected
pairs and withdrawing match suggestions.
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mentormatch.crud import user as user_crud
from mentormatch.database import get_db
from mentormatch.exceptions import MatchingError, NotFoundError
from mentormatch.models.mentorship import MentorshipStatus
from mentormatch.models.user import ApplicationStatus, User, UserRole
from mentormatch.schemas.match import DeclineRequest, TransitionResponse
from mentormatch.schemas.mentorship import (
    MentorCapacity,
    MentorCapacityList,
    PairingAuditEntry,
    PairingDetail,
    PairingList,
    PairingListMeta,
    PairingResponse,
    PairingUpdate,
    PairingUpdateResponse,
)
from mentormatch.schemas.user import CapacityUpdate
from mentormatch.schemas.user import User as UserSchema
from mentormatch.services import match_lifecycle, mentorship_service, notification_service
from mentormatch.api.match import http_error, transition_response
from mentormatch.utils.clock import utcnow
from mentormatch.utils.security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _get_applicant(db: Session, user_id: int) -> User:
    user = user_crud.get_user(db, user_id)
    if not user or user.role == UserRole.ADMIN.value:
        raise http_error(NotFoundError("User not found", code="USER_NOT_FOUND"))
    return user


def _review_application(db: Session, admin: User, user: User, status: ApplicationStatus) -> User:
    user.application_status = status.value
    user.approved_at = utcnow() if status == ApplicationStatus.APPROVED else None

    if status == ApplicationStatus.APPROVED:
        title = "Application approved"
        message = f"Your {user.role} application was approved. Matching is now open."
        event_type = "application_approved"
    else:
        title = "Application reviewed"
        message = f"Your {user.role} application was not approved at this time."
        event_type = "application_rejected"

    notification = notification_service.create_notification(
        db,
        recipient_id=user.id,
        actor_id=admin.id,
        match_suggestion_id=None,
        event_type=event_type,
        title=title,
        message=message,
    )
    db.commit()
    db.refresh(user)
    notification_service.dispatch_email_for_notification(db, notification)
    logger.info("Admin %s set application of user %s to %s", admin.id, user.id, status.value)
    return user


# ─────────────────────────────────────────
# POST /admin/users/{user_id}/approve
# ─────────────────────────────────────────
@router.post("/users/{user_id}/approve", response_model=UserSchema)
def approve_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_applicant(db, user_id)
    return _review_application(db, admin, user, ApplicationStatus.APPROVED)


# ─────────────────────────────────────────
# POST /admin/users/{user_id}/reject
# ─────────────────────────────────────────
@router.post("/users/{user_id}/reject", response_model=UserSchema)
def reject_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_applicant(db, user_id)
    return _review_application(db, admin, user, ApplicationStatus.REJECTED)


# ─────────────────────────────────────────
# GET /admin/mentors/capacity
# ─────────────────────────────────────────
@router.get("/mentors/capacity", response_model=MentorCapacityList)
def list_mentor_capacities(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Every mentor with capacity, active mentees and free slots, fullest first."""
    mentors = mentorship_service.list_mentor_capacities(db)
    return MentorCapacityList(
        mentors=[
            MentorCapacity(
                id=mentor.id,
                name=mentor.name,
                email=mentor.email,
                capacity=mentor.mentor_capacity,
                active_mentees=mentor.active_mentees_count or 0,
                remaining_slots=mentor.remaining_slots,
            )
            for mentor in mentors
        ],
        count=len(mentors),
    )


# ─────────────────────────────────────────
# PUT /admin/mentors/{mentor_id}/capacity
# ─────────────────────────────────────────
@router.put("/mentors/{mentor_id}/capacity", response_model=UserSchema)
def update_mentor_capacity(
    mentor_id: int,
    payload: CapacityUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Capacity may not drop below the mentor's current active mentees."""
    mentor = user_crud.get_user(db, mentor_id)
    if not mentor or mentor.role != UserRole.MENTOR.value:
        raise http_error(NotFoundError("Mentor not found", code="MENTOR_NOT_FOUND"))

    if payload.capacity < (mentor.active_mentees_count or 0):
        raise HTTPException(
            status_code=409,
            detail={
                "code": "CAPACITY_BELOW_ACTIVE",
                "message": f"Mentor already has {mentor.active_mentees_count} active mentees",
            },
        )

    mentor.mentor_capacity = payload.capacity
    db.commit()
    db.refresh(mentor)
    logger.info("Admin %s set capacity of mentor %s to %s", admin.id, mentor.id, payload.capacity)
    return mentor


# ─────────────────────────────────────────
# GET /admin/mentorships
# ─────────────────────────────────────────
@router.get("/mentorships", response_model=PairingList)
def list_mentorships(
    status: Optional[MentorshipStatus] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Connected pairs, most recently changed first; search matches either party's name or email."""
    rows, total = mentorship_service.list_mentorships(
        db, status=status, search=search, page=page, limit=limit
    )
    return PairingList(
        pairings=[PairingResponse.model_validate(row) for row in rows],
        meta=PairingListMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=max(1, math.ceil(total / limit)),
            status=status,
            search=(search or "").strip() or None,
        ),
    )


# ─────────────────────────────────────────
# GET /admin/mentorships/{mentorship_id}
# ─────────────────────────────────────────
@router.get("/mentorships/{mentorship_id}", response_model=PairingDetail)
def get_mentorship(
    mentorship_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        mentorship, audits = mentorship_service.get_mentorship_detail(db, mentorship_id)
    except MatchingError as exc:
        raise http_error(exc)
    return PairingDetail(
        pairing=PairingResponse.model_validate(mentorship),
        audit_trail=[PairingAuditEntry.model_validate(audit) for audit in audits],
    )


# ─────────────────────────────────────────
# PATCH /admin/mentorships/{mentorship_id}
# ─────────────────────────────────────────
@router.patch("/mentorships/{mentorship_id}", response_model=PairingUpdateResponse)
def update_mentorship(
    mentorship_id: int,
    payload: PairingUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Change a pair's status or its notes, goals and program.

    Completing or cancelling frees the mentor's slot. Moving back to active
    or paused takes one again and returns 409 when the mentor is full.
    """
    changes = payload.model_dump(exclude_unset=True, exclude={"reason"})
    try:
        result = mentorship_service.update_mentorship(
            db, mentorship_id, admin.id, changes, reason=payload.reason
        )
    except MatchingError as exc:
        raise http_error(exc)
    return PairingUpdateResponse(
        pairing=PairingResponse.model_validate(result.mentorship),
        unchanged=not result.changed,
        capacity_delta=result.capacity_delta,
    )


# ─────────────────────────────────────────
# POST /admin/matches/{match_id}/reject
# ─────────────────────────────────────────
@router.post("/matches/{match_id}/reject", response_model=TransitionResponse)
def reject_match(
    match_id: int,
    payload: Optional[DeclineRequest] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    reason = payload.reason if payload else None
    try:
        result = match_lifecycle.reject_suggestion(db, match_id, admin.id, reason)
    except MatchingError as exc:
        raise http_error(exc)
    return transition_response(result)
