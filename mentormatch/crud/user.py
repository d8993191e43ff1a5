# mentormatch/crud/user.py
"""
User directory queries and the mentor capacity counter.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from mentormatch import models
from mentormatch.models.user import ApplicationStatus, UserRole


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).options(
        joinedload(models.User.profile)
    ).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.lower()).first()


def _approved_role_query(db: Session, role: UserRole):
    return db.query(models.User).options(
        joinedload(models.User.profile)
    ).filter(
        models.User.role == role.value,
        models.User.application_status == ApplicationStatus.APPROVED.value,
        models.User.is_active.is_(True),
    )


def get_approved_mentor(db: Session, mentor_id: int) -> Optional[models.User]:
    return _approved_role_query(db, UserRole.MENTOR).filter(models.User.id == mentor_id).first()


def get_approved_mentee(db: Session, mentee_id: int) -> Optional[models.User]:
    return _approved_role_query(db, UserRole.MENTEE).filter(models.User.id == mentee_id).first()


def list_approved_mentor_ids(db: Session) -> List[int]:
    rows = db.query(models.User.id).filter(
        models.User.role == UserRole.MENTOR.value,
        models.User.application_status == ApplicationStatus.APPROVED.value,
        models.User.is_active.is_(True),
    ).order_by(models.User.id.asc()).all()
    return [row.id for row in rows]


def list_candidate_mentees(db: Session, exclude_ids: Iterable[int]) -> List[models.User]:
    query = _approved_role_query(db, UserRole.MENTEE)
    excluded = list(exclude_ids)
    if excluded:
        query = query.filter(models.User.id.notin_(excluded))
    return query.order_by(models.User.id.asc()).all()


def list_candidate_mentors(db: Session, exclude_ids: Iterable[int]) -> List[models.User]:
    """Approved mentors with at least one free slot."""
    query = _approved_role_query(db, UserRole.MENTOR).filter(
        models.User.active_mentees_count < models.User.mentor_capacity
    )
    excluded = list(exclude_ids)
    if excluded:
        query = query.filter(models.User.id.notin_(excluded))
    return query.order_by(models.User.id.asc()).all()


def try_reserve_mentor_slot(db: Session, mentor_id: int) -> bool:
    """
    Atomically take one capacity slot for a mentor.

    Single conditional UPDATE, so concurrent callers cannot push the
    counter past ``mentor_capacity``. Does not commit.

    Returns:
        True if a slot was taken, False if the mentor is full
    """
    updated = db.query(models.User).filter(
        models.User.id == mentor_id,
        models.User.role == UserRole.MENTOR.value,
        models.User.active_mentees_count < models.User.mentor_capacity,
    ).update(
        {models.User.active_mentees_count: models.User.active_mentees_count + 1},
        synchronize_session=False,
    )
    return updated == 1


def release_mentor_slot(db: Session, mentor_id: int) -> bool:
    """Give one capacity slot back; never drops the counter below zero. Does not commit."""
    updated = db.query(models.User).filter(
        models.User.id == mentor_id,
        models.User.active_mentees_count > 0,
    ).update(
        {models.User.active_mentees_count: models.User.active_mentees_count - 1},
        synchronize_session=False,
    )
    return updated == 1


def list_mentors(db: Session) -> List[models.User]:
    """Every mentor account, fullest first."""
    free_slots = models.User.mentor_capacity - models.User.active_mentees_count
    return db.query(models.User).filter(
        models.User.role == UserRole.MENTOR.value
    ).order_by(free_slots.asc(), models.User.id.asc()).all()
