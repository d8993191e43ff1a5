# mentormatch/crud/match.py
"""
Match suggestion, mentorship and audit queries.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from mentormatch import models
from mentormatch.models.match import DECLINED_STATUSES, OPEN_STATUSES, MatchStatus
from mentormatch.utils.clock import utcnow

EXPIRABLE_STATUSES = (MatchStatus.SUGGESTED, MatchStatus.MENTOR_ACCEPTED)
IN_FLIGHT_STATUSES = (MatchStatus.MENTOR_ACCEPTED, MatchStatus.MENTEE_ACCEPTED)


# =====================================
# SUGGESTIONS
# =====================================

def get_suggestion(db: Session, suggestion_id: int) -> Optional[models.MatchSuggestion]:
    return db.query(models.MatchSuggestion).filter(
        models.MatchSuggestion.id == suggestion_id
    ).first()


def open_suggestions_by_counterpart(
    db: Session,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
) -> Dict[int, models.MatchSuggestion]:
    """Open suggestions for one subject keyed by the other party's id."""
    query = db.query(models.MatchSuggestion).filter(
        models.MatchSuggestion.status.in_(list(OPEN_STATUSES))
    )
    if mentor_id is not None:
        query = query.filter(models.MatchSuggestion.mentor_id == mentor_id)
        return {row.mentee_id: row for row in query.all()}
    query = query.filter(models.MatchSuggestion.mentee_id == mentee_id)
    return {row.mentor_id: row for row in query.all()}


def terminal_history(
    db: Session,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
) -> Dict[int, List[models.MatchSuggestion]]:
    """Closed suggestions for one subject grouped by the other party's id."""
    terminal = [status for status in MatchStatus if status not in OPEN_STATUSES]
    query = db.query(models.MatchSuggestion).filter(
        models.MatchSuggestion.status.in_(terminal)
    )
    history: Dict[int, List[models.MatchSuggestion]] = defaultdict(list)
    if mentor_id is not None:
        for row in query.filter(models.MatchSuggestion.mentor_id == mentor_id).all():
            history[row.mentee_id].append(row)
    else:
        for row in query.filter(models.MatchSuggestion.mentee_id == mentee_id).all():
            history[row.mentor_id].append(row)
    return history


def recently_declined(rows: Iterable[models.MatchSuggestion], since: datetime) -> bool:
    return any(
        MatchStatus(row.status) in DECLINED_STATUSES
        and (row.updated_at or row.created_at)
        and (row.updated_at or row.created_at) >= since
        for row in rows
    )


def list_open_suggestions(
    db: Session,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[models.MatchSuggestion]:
    query = db.query(models.MatchSuggestion).options(
        joinedload(models.MatchSuggestion.mentor),
        joinedload(models.MatchSuggestion.mentee),
    ).filter(models.MatchSuggestion.status.in_(list(OPEN_STATUSES)))
    if mentor_id is not None:
        query = query.filter(models.MatchSuggestion.mentor_id == mentor_id)
    if mentee_id is not None:
        query = query.filter(models.MatchSuggestion.mentee_id == mentee_id)
    if now is not None:
        query = query.filter(or_(
            models.MatchSuggestion.expires_at.is_(None),
            models.MatchSuggestion.expires_at > now,
        ))
    return query.order_by(
        models.MatchSuggestion.score.desc(),
        models.MatchSuggestion.created_at.asc(),
        models.MatchSuggestion.id.asc(),
    ).limit(limit).all()


def list_all_suggestions(
    db: Session,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
) -> List[models.MatchSuggestion]:
    query = db.query(models.MatchSuggestion)
    if mentor_id is not None:
        query = query.filter(models.MatchSuggestion.mentor_id == mentor_id)
    if mentee_id is not None:
        query = query.filter(models.MatchSuggestion.mentee_id == mentee_id)
    return query.order_by(
        models.MatchSuggestion.updated_at.desc(),
        models.MatchSuggestion.id.desc(),
    ).all()


def list_stale_suggestions(
    db: Session,
    now: datetime,
    *,
    mentor_id: Optional[int] = None,
    mentee_id: Optional[int] = None,
) -> List[models.MatchSuggestion]:
    query = db.query(models.MatchSuggestion).filter(
        models.MatchSuggestion.status.in_(list(EXPIRABLE_STATUSES)),
        models.MatchSuggestion.expires_at.isnot(None),
        models.MatchSuggestion.expires_at <= now,
    )
    if mentor_id is not None:
        query = query.filter(models.MatchSuggestion.mentor_id == mentor_id)
    if mentee_id is not None:
        query = query.filter(models.MatchSuggestion.mentee_id == mentee_id)
    return query.all()


def compare_and_set_status(
    db: Session,
    suggestion_id: int,
    expected: MatchStatus,
    target: MatchStatus,
    **values,
) -> bool:
    """
    Move a suggestion from ``expected`` to ``target`` in one conditional UPDATE.

    Returns False when the row is no longer in ``expected`` (another request
    won the race). Does not commit.
    """
    values["status"] = target
    values["updated_at"] = utcnow()
    updated = db.query(models.MatchSuggestion).filter(
        models.MatchSuggestion.id == suggestion_id,
        models.MatchSuggestion.status == expected,
    ).update(values, synchronize_session=False)
    return updated == 1


# =====================================
# MENTORSHIPS
# =====================================

def mentee_ids_with_mentorship(db: Session, mentor_id: int) -> Set[int]:
    rows = db.query(models.Mentorship.mentee_id).filter(
        models.Mentorship.mentor_id == mentor_id
    ).all()
    return {row.mentee_id for row in rows}


def mentor_ids_with_mentorship(db: Session, mentee_id: int) -> Set[int]:
    rows = db.query(models.Mentorship.mentor_id).filter(
        models.Mentorship.mentee_id == mentee_id
    ).all()
    return {row.mentor_id for row in rows}


# =====================================
# AUDIT
# =====================================

def create_audit(
    db: Session,
    *,
    suggestion_id: Optional[int],
    actor_id: Optional[int],
    actor_role: str,
    action: str,
    reason: Optional[str] = None,
    capacity_before: Optional[int] = None,
    capacity_after: Optional[int] = None,
    mentorship_id: Optional[int] = None,
) -> models.MatchAudit:
    audit = models.MatchAudit(
        match_suggestion_id=suggestion_id,
        mentorship_id=mentorship_id,
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        reason=reason,
        capacity_before=capacity_before,
        capacity_after=capacity_after,
    )
    db.add(audit)
    return audit


def list_audits(db: Session, suggestion_id: int) -> List[models.MatchAudit]:
    return db.query(models.MatchAudit).filter(
        models.MatchAudit.match_suggestion_id == suggestion_id
    ).order_by(models.MatchAudit.id.asc()).all()
