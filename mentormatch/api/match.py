# mentormatch/api/match.py
"""
Matching API Router

Endpoints:
- GET  /mentors/{mentor_id}/match-suggestions             - Open suggestions for a mentor
- GET  /mentors/{mentor_id}/match-suggestions/{match_id}  - One suggestion
- GET  /mentors/{mentor_id}/matches                        - Full history for a mentor
- GET  /mentees/{mentee_id}/match-suggestions             - Open suggestions for a mentee
- GET  /mentees/{mentee_id}/matches                        - Full history for a mentee
- POST /matches/{match_id}/accept | decline                - Mentor response
- POST /matches/{match_id}/mentee-accept | mentee-decline  - Mentee response
- POST /matches/generate                                   - Run the candidate generator
"""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mentormatch.database import get_db
from mentormatch.exceptions import MatchingError
from mentormatch.models.match import MatchStatus, MatchSuggestion
from mentormatch.models.user import User, UserRole
from mentormatch.schemas.match import (
    BackfillResponse,
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
from mentormatch.services import backfill, match_lifecycle, match_service
from mentormatch.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Matching"])


# ======================
# HELPERS
# ======================

def http_error(exc: MatchingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN.value


def _ensure_self_or_admin(current_user: User, user_id: int) -> None:
    if not _is_admin(current_user) and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Not allowed to access another user's matches")


def _ensure_role(current_user: User, role: UserRole) -> None:
    if current_user.role != role.value:
        raise HTTPException(status_code=403, detail=f"Only {role.value}s can perform this action")


def serialize_suggestion(suggestion: MatchSuggestion) -> MatchSuggestionResponse:
    status = suggestion.status
    mentor = suggestion.mentor
    return MatchSuggestionResponse(
        id=suggestion.id,
        mentor_id=suggestion.mentor_id,
        mentee_id=suggestion.mentee_id,
        score=suggestion.score,
        score_breakdown=ScoreBreakdown(**suggestion.score_breakdown),
        status=getattr(status, "value", status),
        notes=suggestion.notes,
        details=suggestion.details or {},
        mentee=suggestion.mentee_snapshot or {},
        mentor=suggestion.mentor_snapshot or {},
        mentor_capacity_reached=bool(mentor and mentor.capacity_reached),
        expires_at=suggestion.expires_at,
        created_at=suggestion.created_at,
        updated_at=suggestion.updated_at,
    )


def transition_response(result: match_lifecycle.TransitionResult) -> TransitionResponse:
    mentorship = None
    if result.mentorship is not None:
        mentorship = MentorshipResponse.model_validate(result.mentorship)
    return TransitionResponse(
        match=serialize_suggestion(result.suggestion),
        mentorship=mentorship,
    )


def _mentor_meta(mentor: Optional[User], count: int) -> MentorSuggestionMeta:
    if mentor is None:
        return MentorSuggestionMeta(count=count)
    return MentorSuggestionMeta(
        count=count,
        capacity=mentor.mentor_capacity,
        active_mentees=mentor.active_mentees_count,
        remaining_slots=mentor.remaining_slots,
        capacity_reached=mentor.capacity_reached,
    )


# ======================
# MENTOR VIEWS
# ======================

@router.get("/mentors/{mentor_id}/match-suggestions", response_model=MentorSuggestionList)
def get_mentor_match_suggestions(
    mentor_id: int,
    limit: Optional[int] = Query(None, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Open suggestions for a mentor, highest score first.

    Expired suggestions are flipped to ``expired`` before listing. An
    unexpected storage error is logged and answered with an empty list.
    """
    _ensure_self_or_admin(current_user, mentor_id)
    try:
        mentor, rows = match_service.list_suggestions_for_mentor(db, mentor_id, limit)
    except MatchingError as exc:
        raise http_error(exc)
    except Exception:
        db.rollback()
        logger.warning("Failed to list match suggestions for mentor %s", mentor_id, exc_info=True)
        return MentorSuggestionList(suggestions=[], meta=MentorSuggestionMeta(count=0))

    return MentorSuggestionList(
        suggestions=[serialize_suggestion(row) for row in rows],
        meta=_mentor_meta(mentor, len(rows)),
    )


@router.get(
    "/mentors/{mentor_id}/match-suggestions/{match_id}",
    response_model=MatchDetailResponse,
)
def get_mentor_match_suggestion(
    mentor_id: int,
    match_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _ensure_self_or_admin(current_user, mentor_id)
    try:
        suggestion = match_service.get_suggestion_detail(db, mentor_id, match_id)
    except MatchingError as exc:
        raise http_error(exc)
    return MatchDetailResponse(match=serialize_suggestion(suggestion))


@router.get("/mentors/{mentor_id}/matches", response_model=List[MatchSuggestionResponse])
def get_mentor_matches(
    mentor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _ensure_self_or_admin(current_user, mentor_id)
    try:
        _, rows = match_service.list_matches_for_mentor(db, mentor_id)
    except MatchingError as exc:
        raise http_error(exc)
    return [serialize_suggestion(row) for row in rows]


# ======================
# MENTEE VIEWS
# ======================

@router.get("/mentees/{mentee_id}/match-suggestions", response_model=MenteeSuggestionList)
def get_mentee_match_suggestions(
    mentee_id: int,
    limit: Optional[int] = Query(None, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open suggestions for a mentee, each flagged when the mentor is full."""
    _ensure_self_or_admin(current_user, mentee_id)
    try:
        _, rows = match_service.list_suggestions_for_mentee(db, mentee_id, limit)
    except MatchingError as exc:
        raise http_error(exc)
    except Exception:
        db.rollback()
        logger.warning("Failed to list match suggestions for mentee %s", mentee_id, exc_info=True)
        return MenteeSuggestionList(suggestions=[], meta=MenteeSuggestionMeta(count=0))

    statuses = [MatchStatus(row.status) for row in rows]
    return MenteeSuggestionList(
        suggestions=[serialize_suggestion(row) for row in rows],
        meta=MenteeSuggestionMeta(
            count=len(rows),
            awaiting_mentee=statuses.count(MatchStatus.MENTOR_ACCEPTED),
            awaiting_mentor=statuses.count(MatchStatus.SUGGESTED),
        ),
    )


@router.get("/mentees/{mentee_id}/matches", response_model=List[MatchSuggestionResponse])
def get_mentee_matches(
    mentee_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _ensure_self_or_admin(current_user, mentee_id)
    try:
        _, rows = match_service.list_matches_for_mentee(db, mentee_id)
    except MatchingError as exc:
        raise http_error(exc)
    return [serialize_suggestion(row) for row in rows]


# ======================
# LIFECYCLE
# ======================

@router.post("/matches/{match_id}/accept", response_model=TransitionResponse)
def accept_match(
    match_id: int,
    payload: Optional[MentorAcceptRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _ensure_role(current_user, UserRole.MENTOR)
    note = payload.note if payload else None
    try:
        result = match_lifecycle.mentor_accept(db, match_id, current_user.id, note)
    except MatchingError as exc:
        raise http_error(exc)
    return transition_response(result)


@router.post("/matches/{match_id}/decline", response_model=TransitionResponse)
def decline_match(
    match_id: int,
    payload: Optional[DeclineRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _ensure_role(current_user, UserRole.MENTOR)
    reason = payload.reason if payload else None
    try:
        result = match_lifecycle.mentor_decline(db, match_id, current_user.id, reason)
    except MatchingError as exc:
        raise http_error(exc)
    return transition_response(result)


@router.post("/matches/{match_id}/mentee-accept", response_model=TransitionResponse)
def mentee_accept_match(
    match_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mentee confirms a mentor-accepted match; the pair is connected."""
    _ensure_role(current_user, UserRole.MENTEE)
    try:
        result = match_lifecycle.mentee_accept(db, match_id, current_user.id)
    except MatchingError as exc:
        raise http_error(exc)
    return transition_response(result)


@router.post("/matches/{match_id}/mentee-decline", response_model=TransitionResponse)
def mentee_decline_match(
    match_id: int,
    payload: Optional[DeclineRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _ensure_role(current_user, UserRole.MENTEE)
    reason = payload.reason if payload else None
    try:
        result = match_lifecycle.mentee_decline(db, match_id, current_user.id, reason)
    except MatchingError as exc:
        raise http_error(exc)
    return transition_response(result)


# ======================
# GENERATION
# ======================

@router.post("/matches/generate", response_model=Union[GenerateResponse, BackfillResponse])
def generate_matches(
    payload: GenerateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Run the candidate generator.

    With ``mentor_id`` or ``mentee_id`` it generates for that subject (self or
    admin). Without a subject, admins get a backfill over every mentor and
    mentors/mentees generate for themselves.
    """
    if payload.mentor_id is not None and payload.mentee_id is not None:
        raise HTTPException(
            status_code=422,
            detail={"code": "VALIDATION_ERROR", "message": "Provide mentor_id or mentee_id, not both"},
        )

    mentor_id = payload.mentor_id
    mentee_id = payload.mentee_id
    if mentor_id is None and mentee_id is None:
        if _is_admin(current_user):
            summary = backfill.generate_suggestions_for_all_mentors(
                db, backfill.BackfillConfig(limit=payload.limit)
            )
            return BackfillResponse(**summary.as_dict())
        if current_user.role == UserRole.MENTOR.value:
            mentor_id = current_user.id
        elif current_user.role == UserRole.MENTEE.value:
            mentee_id = current_user.id
        else:
            raise HTTPException(status_code=403, detail="Not allowed to generate matches")

    try:
        if mentor_id is not None:
            _ensure_self_or_admin(current_user, mentor_id)
            result = match_service.generate_suggestions_for_mentor(db, mentor_id, payload.limit)
        else:
            _ensure_self_or_admin(current_user, mentee_id)
            result = match_service.generate_suggestions_for_mentee(db, mentee_id, payload.limit)
    except MatchingError as exc:
        raise http_error(exc)

    return GenerateResponse(
        matches=[serialize_suggestion(row) for row in result.suggestions],
        created=result.created,
        updated=result.updated,
        capacity_reached=result.capacity_reached,
    )
