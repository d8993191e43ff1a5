# mentormatch/crud/mentorship.py
"""
Mentorship queries for the admin pairing screens.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, aliased, joinedload

from mentormatch import models
from mentormatch.models.mentorship import MentorshipStatus


def _with_parties(db: Session):
    return db.query(models.Mentorship).options(
        joinedload(models.Mentorship.mentor),
        joinedload(models.Mentorship.mentee),
        joinedload(models.Mentorship.match_suggestion),
    )


def get_mentorship(db: Session, mentorship_id: int) -> Optional[models.Mentorship]:
    return _with_parties(db).filter(models.Mentorship.id == mentorship_id).first()


def list_mentorships(
    db: Session,
    *,
    status: Optional[MentorshipStatus] = None,
    search: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[models.Mentorship], int]:
    """One page of mentorships, most recently changed first, plus the total count.

    ``search`` matches the mentor's or the mentee's name or email.
    """
    query = db.query(models.Mentorship)
    if status is not None:
        query = query.filter(models.Mentorship.status == MentorshipStatus(status).value)
    if search:
        mentor = aliased(models.User)
        mentee = aliased(models.User)
        pattern = f"%{search.strip()}%"
        query = query.join(mentor, models.Mentorship.mentor_id == mentor.id).join(
            mentee, models.Mentorship.mentee_id == mentee.id
        ).filter(or_(
            mentor.name.ilike(pattern),
            mentor.email.ilike(pattern),
            mentee.name.ilike(pattern),
            mentee.email.ilike(pattern),
        ))

    total = query.count()
    ids = [
        row.id
        for row in query.with_entities(models.Mentorship.id).order_by(
            func.coalesce(models.Mentorship.updated_at, models.Mentorship.started_at).desc(),
            models.Mentorship.id.desc(),
        ).offset(offset).limit(limit).all()
    ]
    if not ids:
        return [], total
    by_id = {row.id: row for row in _with_parties(db).filter(models.Mentorship.id.in_(ids)).all()}
    return [by_id[mentorship_id] for mentorship_id in ids], total


def compare_and_set_status(
    db: Session,
    mentorship_id: int,
    expected: MentorshipStatus,
    target: MentorshipStatus,
) -> bool:
    """Move a mentorship from ``expected`` to ``target``; False if someone got there first."""
    updated = db.query(models.Mentorship).filter(
        models.Mentorship.id == mentorship_id,
        models.Mentorship.status == MentorshipStatus(expected).value,
    ).update(
        {models.Mentorship.status: MentorshipStatus(target).value},
        synchronize_session=False,
    )
    return updated == 1


def list_audits(db: Session, mentorship_id: int, limit: int = 10) -> List[models.MatchAudit]:
    return db.query(models.MatchAudit).filter(
        models.MatchAudit.mentorship_id == mentorship_id
    ).order_by(models.MatchAudit.id.desc()).limit(limit).all()
