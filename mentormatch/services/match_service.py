# mentormatch/services/match_service.py
"""
Match Suggestion Service

Candidate generation (mentor-side and mentee-side) and the suggestion
listings behind the match-suggestion endpoints.

Generation is idempotent: an open ``suggested`` row for a pair is rescored in
place instead of duplicated, so running it twice with no data change leaves
the same rows behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.config import settings
from mentormatch.crud import match as match_crud
from mentormatch.crud import user as user_crud
from mentormatch.exceptions import InvalidStateError, NotFoundError
from mentormatch.models.match import MatchStatus
from mentormatch.models.user import UserRole
from mentormatch.services import notification_service
from mentormatch.services.match_lifecycle import expire_stale_suggestions
from mentormatch.services.scoring import (
    InteractionHistory,
    MatchProfile,
    MatchScore,
    PriorityPolicy,
    ScoreWeights,
    ranking_key,
    score_pair,
)
from mentormatch.utils.clock import utcnow

logger = logging.getLogger(__name__)

SNAPSHOT_LIST_LIMIT = 10
SNAPSHOT_SLOT_LIMIT = 6


# =====================================
# CONFIGURATION
# =====================================

@dataclass(frozen=True)
class GenerationConfig:
    """Knobs for one generation run, normally taken from settings."""
    default_limit: int = 10
    max_limit: int = 50
    ttl_days: int = 14
    decline_cooldown_days: int = 30
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    priority_policy: PriorityPolicy = field(default_factory=PriorityPolicy)

    @classmethod
    def from_settings(cls, config=None) -> "GenerationConfig":
        config = config or settings
        return cls(
            default_limit=config.MATCH_SUGGESTION_LIMIT,
            max_limit=config.MATCH_MAX_LIMIT,
            ttl_days=config.MATCH_SUGGESTION_TTL_DAYS,
            decline_cooldown_days=config.MATCH_DECLINE_COOLDOWN_DAYS,
            weights=ScoreWeights.from_settings(config),
            priority_policy=PriorityPolicy.from_settings(config),
        )

    def resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.default_limit
        return max(1, min(int(limit), self.max_limit))


@dataclass
class ScoredCandidate:
    user: models.User
    profile: MatchProfile
    score: MatchScore


@dataclass
class GenerationResult:
    subject_id: int
    suggestions: List[models.MatchSuggestion] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    capacity_reached: bool = False

    @property
    def generated(self) -> int:
        return len(self.suggestions)


# =====================================
# SNAPSHOTS
# =====================================

def build_snapshot(user: models.User, *, include_capacity: bool = False) -> Dict:
    """Small preview of a user stored on the suggestion for list views."""
    profile = user.profile
    snapshot = {
        "id": user.id,
        "name": (getattr(profile, "display_name", None) or user.name or user.email),
        "program": getattr(profile, "program", None),
        "major": getattr(profile, "major", None),
        "skills": list(getattr(profile, "skills", None) or [])[:SNAPSHOT_LIST_LIMIT],
        "expertise_areas": list(getattr(profile, "expertise_areas", None) or [])[:SNAPSHOT_LIST_LIMIT],
        "interests": list(getattr(profile, "interests", None) or [])[:SNAPSHOT_LIST_LIMIT],
        "goals": getattr(profile, "mentoring_goals", None),
        "availability_slots": list(getattr(profile, "availability_slots", None) or [])[:SNAPSHOT_SLOT_LIMIT],
    }
    if include_capacity:
        snapshot["capacity"] = user.mentor_capacity
    return snapshot


# =====================================
# RANKING
# =====================================

def rank_candidates(
    subject: models.User,
    candidates: List[models.User],
    *,
    subject_is_mentor: bool,
    histories: Dict[int, List[models.MatchSuggestion]],
    config: GenerationConfig,
    as_of: datetime,
) -> List[ScoredCandidate]:
    """Score every candidate against the subject and sort best first."""
    subject_profile = MatchProfile.from_user(subject)
    scored: List[ScoredCandidate] = []
    for candidate in candidates:
        profile = MatchProfile.from_user(candidate)
        history = InteractionHistory.from_statuses(
            row.status for row in histories.get(candidate.id, [])
        )
        mentor, mentee = (subject_profile, profile) if subject_is_mentor else (profile, subject_profile)
        score = score_pair(
            mentor,
            mentee,
            history=history,
            weights=config.weights,
            priority_policy=config.priority_policy,
            as_of=as_of,
        )
        scored.append(ScoredCandidate(user=candidate, profile=profile, score=score))
    scored.sort(key=lambda item: ranking_key(item.score, item.profile))
    return scored


def _upsert_suggestion(
    db: Session,
    *,
    mentor: models.User,
    mentee: models.User,
    score: MatchScore,
    existing: Optional[models.MatchSuggestion],
    expires_at: datetime,
    now: datetime,
) -> Tuple[models.MatchSuggestion, bool]:
    values = {
        "score": score.total,
        "expertise_score": score.expertise,
        "availability_score": score.availability,
        "interaction_score": score.interactions,
        "priority_score": score.priority,
        "details": dict(score.details),
        "mentee_snapshot": build_snapshot(mentee),
        "mentor_snapshot": build_snapshot(mentor, include_capacity=True),
        "expires_at": expires_at,
    }
    if existing is not None:
        for key, value in values.items():
            setattr(existing, key, value)
        existing.updated_at = now
        return existing, False

    suggestion = models.MatchSuggestion(
        mentor_id=mentor.id,
        mentee_id=mentee.id,
        status=MatchStatus.SUGGESTED,
        created_at=now,
        updated_at=now,
        **values,
    )
    db.add(suggestion)
    db.flush()
    match_crud.create_audit(
        db,
        suggestion_id=suggestion.id,
        actor_id=None,
        actor_role="system",
        action="suggested",
    )
    return suggestion, True


def _persist(
    db: Session,
    result: GenerationResult,
    ranked: List[ScoredCandidate],
    *,
    subject: models.User,
    subject_is_mentor: bool,
    open_rows: Dict[int, models.MatchSuggestion],
    config: GenerationConfig,
    now: datetime,
) -> None:
    expires_at = now + timedelta(days=config.ttl_days)
    notifications = []
    try:
        for candidate in ranked:
            mentor, mentee = (subject, candidate.user) if subject_is_mentor else (candidate.user, subject)
            suggestion, is_new = _upsert_suggestion(
                db,
                mentor=mentor,
                mentee=mentee,
                score=candidate.score,
                existing=open_rows.get(candidate.user.id),
                expires_at=expires_at,
                now=now,
            )
            result.suggestions.append(suggestion)
            if is_new:
                result.created += 1
            else:
                result.updated += 1

        if result.created:
            noun = "mentee" if subject_is_mentor else "mentor"
            plural = "s" if result.created > 1 else ""
            notifications.append(notification_service.create_notification(
                db,
                recipient_id=subject.id,
                actor_id=None,
                match_suggestion_id=None,
                event_type="match_suggestion",
                title=f"New {noun} suggestions ready",
                message=f"We found {result.created} new {noun}{plural} that match your profile.",
            ))
        db.commit()
    except IntegrityError:
        # Another run inserted an open suggestion for one of these pairs first.
        db.rollback()
        logger.warning("Concurrent generation for user %s hit an open pair", subject.id)
        raise InvalidStateError(
            "Suggestions for this user are being generated by another request",
            code="GENERATION_CONFLICT",
        )
    except Exception:
        db.rollback()
        raise

    for suggestion in result.suggestions:
        db.refresh(suggestion)
    notification_service.dispatch_all(db, notifications)


# =====================================
# CANDIDATE GENERATION
# =====================================

def generate_suggestions_for_mentor(
    db: Session,
    mentor_id: int,
    limit: Optional[int] = None,
    *,
    config: Optional[GenerationConfig] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """
    Score approved mentees for a mentor and persist the top ``limit``.

    Excludes mentees already connected to the mentor, mentees with an
    in-flight (mentor_accepted/mentee_accepted) suggestion, and mentees
    declined within the cooldown. A full mentor still gets suggestions;
    ``capacity_reached`` is set on the result.

    Raises:
        NotFoundError: Mentor unknown, inactive or not approved
    """
    config = config or GenerationConfig.from_settings()
    now = now or utcnow()
    limit = config.resolve_limit(limit)

    mentor = user_crud.get_approved_mentor(db, mentor_id)
    if mentor is None:
        raise NotFoundError("Mentor not found or not approved", code="MENTOR_NOT_AVAILABLE")

    expire_stale_suggestions(db, mentor_id=mentor_id, now=now, commit=False)

    open_rows = match_crud.open_suggestions_by_counterpart(db, mentor_id=mentor_id)
    histories = match_crud.terminal_history(db, mentor_id=mentor_id)
    cooldown_start = now - timedelta(days=config.decline_cooldown_days)

    excluded = set(match_crud.mentee_ids_with_mentorship(db, mentor_id))
    excluded |= {
        mentee_id for mentee_id, row in open_rows.items()
        if MatchStatus(row.status) != MatchStatus.SUGGESTED
    }
    excluded |= {
        mentee_id for mentee_id, rows in histories.items()
        if match_crud.recently_declined(rows, cooldown_start)
    }

    candidates = user_crud.list_candidate_mentees(db, excluded)
    ranked = rank_candidates(
        mentor,
        candidates,
        subject_is_mentor=True,
        histories=histories,
        config=config,
        as_of=now,
    )[:limit]

    result = GenerationResult(subject_id=mentor_id, capacity_reached=mentor.capacity_reached)
    _persist(
        db,
        result,
        ranked,
        subject=mentor,
        subject_is_mentor=True,
        open_rows=open_rows,
        config=config,
        now=now,
    )
    logger.info(
        "Generated suggestions for mentor %s: %s candidates, %s created, %s updated",
        mentor_id,
        len(candidates),
        result.created,
        result.updated,
    )
    return result


def generate_suggestions_for_mentee(
    db: Session,
    mentee_id: int,
    limit: Optional[int] = None,
    *,
    config: Optional[GenerationConfig] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """
    Score approved mentors for a mentee and persist the top ``limit``.

    Mentors at full capacity are not candidates here.

    Raises:
        NotFoundError: Mentee unknown, inactive or not approved
    """
    config = config or GenerationConfig.from_settings()
    now = now or utcnow()
    limit = config.resolve_limit(limit)

    mentee = user_crud.get_approved_mentee(db, mentee_id)
    if mentee is None:
        raise NotFoundError("Mentee not found or not approved", code="MENTEE_NOT_AVAILABLE")

    expire_stale_suggestions(db, mentee_id=mentee_id, now=now, commit=False)

    open_rows = match_crud.open_suggestions_by_counterpart(db, mentee_id=mentee_id)
    histories = match_crud.terminal_history(db, mentee_id=mentee_id)
    cooldown_start = now - timedelta(days=config.decline_cooldown_days)

    excluded = set(match_crud.mentor_ids_with_mentorship(db, mentee_id))
    excluded |= {
        mentor_id for mentor_id, row in open_rows.items()
        if MatchStatus(row.status) != MatchStatus.SUGGESTED
    }
    excluded |= {
        mentor_id for mentor_id, rows in histories.items()
        if match_crud.recently_declined(rows, cooldown_start)
    }

    candidates = user_crud.list_candidate_mentors(db, excluded)
    ranked = rank_candidates(
        mentee,
        candidates,
        subject_is_mentor=False,
        histories=histories,
        config=config,
        as_of=now,
    )[:limit]

    result = GenerationResult(subject_id=mentee_id)
    _persist(
        db,
        result,
        ranked,
        subject=mentee,
        subject_is_mentor=False,
        open_rows=open_rows,
        config=config,
        now=now,
    )
    logger.info(
        "Generated suggestions for mentee %s: %s candidates, %s created, %s updated",
        mentee_id,
        len(candidates),
        result.created,
        result.updated,
    )
    return result


# =====================================
# LISTINGS
# =====================================

def listing_limit(limit: Optional[int]) -> int:
    """Clamp a page size for list reads without loading the scoring weights."""
    return GenerationConfig(
        default_limit=settings.MATCH_SUGGESTION_LIMIT,
        max_limit=settings.MATCH_MAX_LIMIT,
    ).resolve_limit(limit)


def _get_user_with_role(db: Session, user_id: int, role: UserRole) -> models.User:
    user = user_crud.get_user(db, user_id)
    if user is None or user.role != role.value:
        raise NotFoundError(f"{role.value.capitalize()} not found", code=f"{role.name}_NOT_FOUND")
    return user


def list_suggestions_for_mentor(
    db: Session,
    mentor_id: int,
    limit: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
) -> Tuple[models.User, List[models.MatchSuggestion]]:
    """Open, unexpired suggestions for a mentor, best score first."""
    now = now or utcnow()
    limit = listing_limit(limit)
    mentor = _get_user_with_role(db, mentor_id, UserRole.MENTOR)
    expire_stale_suggestions(db, mentor_id=mentor_id, now=now)
    rows = match_crud.list_open_suggestions(db, mentor_id=mentor_id, limit=limit, now=now)
    return mentor, rows


def list_suggestions_for_mentee(
    db: Session,
    mentee_id: int,
    limit: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
) -> Tuple[models.User, List[models.MatchSuggestion]]:
    now = now or utcnow()
    limit = listing_limit(limit)
    mentee = _get_user_with_role(db, mentee_id, UserRole.MENTEE)
    expire_stale_suggestions(db, mentee_id=mentee_id, now=now)
    rows = match_crud.list_open_suggestions(db, mentee_id=mentee_id, limit=limit, now=now)
    return mentee, rows


def get_suggestion_detail(
    db: Session,
    mentor_id: int,
    match_id: int,
    *,
    now: Optional[datetime] = None,
) -> models.MatchSuggestion:
    now = now or utcnow()
    suggestion = match_crud.get_suggestion(db, match_id)
    if suggestion is None or suggestion.mentor_id != mentor_id:
        raise NotFoundError("Match suggestion not found", code="MATCH_NOT_FOUND")
    expire_stale_suggestions(db, mentor_id=mentor_id, now=now)
    db.refresh(suggestion)
    return suggestion


def list_matches_for_mentor(db: Session, mentor_id: int) -> Tuple[models.User, List[models.MatchSuggestion]]:
    mentor = _get_user_with_role(db, mentor_id, UserRole.MENTOR)
    return mentor, match_crud.list_all_suggestions(db, mentor_id=mentor_id)


def list_matches_for_mentee(db: Session, mentee_id: int) -> Tuple[models.User, List[models.MatchSuggestion]]:
    mentee = _get_user_with_role(db, mentee_id, UserRole.MENTEE)
    return mentee, match_crud.list_all_suggestions(db, mentee_id=mentee_id)
