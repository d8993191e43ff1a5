"""
Create approved mentees whose interests and availability mirror one mentor.

The mentor-side counterpart of ``seed_matching_mentors``. With
``--regenerate`` the mentor's suggestions are rebuilt right away.

Usage:
  python -m mentormatch.scripts.seed_matching_mentees --mentor-id 3
  python -m mentormatch.scripts.seed_matching_mentees --mentor-email grace@uni.edu --count 5 --regenerate
"""

import argparse
import random
import sys
import time
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.crud import user as user_crud
from mentormatch.database import SessionLocal
from mentormatch.models.user import ApplicationStatus, UserRole
from mentormatch.scripts.seed_matching_mentors import DEFAULT_PASSWORD, FALLBACK_DAYS, _terms
from mentormatch.services import match_service
from mentormatch.utils.clock import utcnow
from mentormatch.utils.security import get_password_hash


@dataclass(frozen=True)
class SeedConfig:
    mentor_id: Optional[int] = None
    mentor_email: Optional[str] = None
    count: int = 3
    prefix: str = "seed-mentee"
    seed: Optional[int] = None
    password: str = DEFAULT_PASSWORD
    regenerate: bool = False


def _find_mentor(db: Session, config: SeedConfig) -> Optional[models.User]:
    if config.mentor_id is not None:
        user = user_crud.get_user(db, config.mentor_id)
    else:
        user = user_crud.get_user_by_email(db, config.mentor_email or "")
    if user is None or user.role != UserRole.MENTOR.value:
        return None
    return user


def seed_mentees(db: Session, config: SeedConfig) -> List[models.User]:
    """Insert ``config.count`` approved mentees that want what the mentor offers."""
    mentor = _find_mentor(db, config)
    if mentor is None:
        raise ValueError("Mentor not found")

    rng = random.Random(config.seed)
    profile = mentor.profile
    mentor_terms = sorted(set(
        _terms(getattr(profile, "expertise_areas", None))
        + _terms(getattr(profile, "interests", None))
    ))
    slots = list(getattr(profile, "availability_slots", None) or [])
    password_hash = get_password_hash(config.password)
    stamp = int(time.time())

    created = []
    for index in range(config.count):
        wanted = rng.sample(mentor_terms, min(4, len(mentor_terms))) or ["general"]
        fallback_day = FALLBACK_DAYS[index % len(FALLBACK_DAYS)]
        first = slots[0] if slots else {}
        availability = [{
            "day": first.get("day") or fallback_day,
            "start": first.get("start") or "10:00",
            "end": first.get("end") or "11:00",
        }]

        name = f"{config.prefix.replace('-', ' ').title()} {index + 1}"
        mentee = models.User(
            name=name,
            email=f"{config.prefix}-{stamp}-{index}@example.com",
            password_hash=password_hash,
            role=UserRole.MENTEE.value,
            application_status=ApplicationStatus.APPROVED.value,
            approved_at=utcnow(),
            is_active=True,
        )
        db.add(mentee)
        db.flush()
        db.add(models.UserProfile(
            user_id=mentee.id,
            display_name=name,
            program=getattr(profile, "program", None) or "General",
            skills=wanted,
            interests=wanted,
            mentoring_goals=f"Learn from {mentor.name}",
            availability_slots=availability,
        ))
        created.append(mentee)

    db.commit()

    if config.regenerate:
        match_service.generate_suggestions_for_mentor(db, mentor.id)
    return created


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed mentees that match a given mentor.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--mentor-id", type=int)
    target.add_argument("--mentor-email")
    parser.add_argument("--count", type=int, default=3)
    parser.add_argument("--prefix", default="seed-mentee")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable picks")
    parser.add_argument("--regenerate", action="store_true", help="Rebuild the mentor's suggestions afterwards")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = SeedConfig(
        mentor_id=args.mentor_id,
        mentor_email=args.mentor_email,
        count=max(1, args.count),
        prefix=args.prefix,
        seed=args.seed,
        regenerate=args.regenerate,
    )

    db = SessionLocal()
    try:
        mentees = seed_mentees(db, config)
        for mentee in mentees:
            print(f"Created mentee {mentee.id} ({mentee.email})")
        print(f"Created {len(mentees)} mentees. Password: {config.password}")
    except Exception as exc:
        db.rollback()
        print(f"Seeding failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
