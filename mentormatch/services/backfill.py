# mentormatch/services/backfill.py
"""
Batch generation of match suggestions for every approved mentor.

Used by ``scripts/backfill_match_suggestions.py`` and by the admin
``POST /matches/generate`` call without a subject.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from mentormatch.crud import user as user_crud
from mentormatch.services import match_service
from mentormatch.services.match_lifecycle import expire_stale_suggestions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackfillConfig:
    limit: Optional[int] = None
    mentor_id: Optional[int] = None
    expire_stale: bool = True


@dataclass
class MentorRun:
    mentor_id: int
    generated: int = 0
    created: int = 0
    updated: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BackfillSummary:
    runs: List[MentorRun] = field(default_factory=list)
    expired: int = 0

    @property
    def mentors_processed(self) -> int:
        return len(self.runs)

    @property
    def created(self) -> int:
        return sum(run.created for run in self.runs)

    @property
    def updated(self) -> int:
        return sum(run.updated for run in self.runs)

    @property
    def failures(self) -> int:
        return sum(1 for run in self.runs if not run.ok)

    def as_dict(self) -> dict:
        return {
            "runs": [
                {
                    "mentor_id": run.mentor_id,
                    "generated": run.generated,
                    "created": run.created,
                    "updated": run.updated,
                    "error": run.error,
                }
                for run in self.runs
            ],
            "mentors_processed": self.mentors_processed,
            "created": self.created,
            "updated": self.updated,
            "expired": self.expired,
            "failures": self.failures,
        }


def _run_one(db: Session, mentor_id: int, limit: Optional[int]) -> MentorRun:
    run = MentorRun(mentor_id=mentor_id)
    try:
        result = match_service.generate_suggestions_for_mentor(db, mentor_id, limit)
    except Exception as exc:
        db.rollback()
        logger.exception("Suggestion backfill failed for mentor %s", mentor_id)
        run.error = str(exc) or exc.__class__.__name__
        return run
    run.generated = result.generated
    run.created = result.created
    run.updated = result.updated
    return run


def generate_suggestions_for_all_mentors(db: Session, config: BackfillConfig) -> BackfillSummary:
    """
    Run the candidate generator for every approved, active mentor in id order.

    A failure for one mentor is rolled back and recorded on its run; the
    remaining mentors are still processed.
    """
    summary = BackfillSummary()
    if config.expire_stale:
        summary.expired = expire_stale_suggestions(db)

    mentor_ids = user_crud.list_approved_mentor_ids(db)
    if config.mentor_id is not None:
        mentor_ids = [mentor_id for mentor_id in mentor_ids if mentor_id == config.mentor_id]

    for mentor_id in mentor_ids:
        summary.runs.append(_run_one(db, mentor_id, config.limit))

    logger.info(
        "Suggestion backfill finished: %s mentors, %s created, %s updated, %s expired, %s failures",
        summary.mentors_processed,
        summary.created,
        summary.updated,
        summary.expired,
        summary.failures,
    )
    return summary


def generate_suggestions_for_mentor_run(db: Session, config: BackfillConfig) -> BackfillSummary:
    """Single-mentor backfill. ``config.mentor_id`` is required."""
    if config.mentor_id is None:
        raise ValueError("mentor_id is required for a single-mentor run")
    summary = BackfillSummary()
    if config.expire_stale:
        summary.expired = expire_stale_suggestions(db, mentor_id=config.mentor_id)
    summary.runs.append(_run_one(db, config.mentor_id, config.limit))
    return summary
