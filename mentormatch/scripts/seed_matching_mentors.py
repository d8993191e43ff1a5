"""
Create approved mentors whose expertise and availability mirror one mentee.

Handy for trying the matching flow by hand.

Usage:
  python -m mentormatch.scripts.seed_matching_mentors --mentee-id 7
  python -m mentormatch.scripts.seed_matching_mentors --mentee-email ada@uni.edu --count 5 --seed 42
"""

import argparse
import random
import sys
import time
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.config import settings
from mentormatch.crud import user as user_crud
from mentormatch.database import SessionLocal
from mentormatch.models.user import ApplicationStatus, UserRole
from mentormatch.utils.clock import utcnow
from mentormatch.utils.security import get_password_hash

DEFAULT_PASSWORD = "ChangeMe123!"
FALLBACK_DAYS = ("mon", "tue", "wed", "thu", "fri")


@dataclass(frozen=True)
class SeedConfig:
    mentee_id: Optional[int] = None
    mentee_email: Optional[str] = None
    count: int = 3
    prefix: str = "seed-mentor"
    seed: Optional[int] = None
    password: str = DEFAULT_PASSWORD


def _terms(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip().lower() for item in value if str(item).strip()]


def _find_mentee(db: Session, config: SeedConfig) -> Optional[models.User]:
    if config.mentee_id is not None:
        user = user_crud.get_user(db, config.mentee_id)
    else:
        user = user_crud.get_user_by_email(db, config.mentee_email or "")
    if user is None or user.role != UserRole.MENTEE.value:
        return None
    return user


def seed_mentors(db: Session, config: SeedConfig) -> List[models.User]:
    """Insert ``config.count`` approved mentors tailored to the mentee."""
    mentee = _find_mentee(db, config)
    if mentee is None:
        raise ValueError("Mentee not found")

    rng = random.Random(config.seed)
    profile = mentee.profile
    mentee_terms = sorted(set(
        _terms(getattr(profile, "skills", None))
        + _terms(getattr(profile, "interests", None))
        + _terms(getattr(profile, "mentoring_goals", None))
    ))
    interests = list(getattr(profile, "interests", None) or [])[:3]
    slots = list(getattr(profile, "availability_slots", None) or [])
    password_hash = get_password_hash(config.password)
    stamp = int(time.time())

    created = []
    for index in range(config.count):
        expertise = rng.sample(mentee_terms, min(3, len(mentee_terms))) or ["general"]
        if slots:
            first = slots[0]
            availability = [{
                "day": first.get("day") or FALLBACK_DAYS[index % len(FALLBACK_DAYS)],
                "start": first.get("start") or "10:00",
                "end": first.get("end") or "11:00",
            }]
        else:
            availability = [{"day": FALLBACK_DAYS[index % len(FALLBACK_DAYS)], "start": "10:00", "end": "11:00"}]

        name = f"{config.prefix.replace('-', ' ').title()} {index + 1}"
        mentor = models.User(
            name=name,
            email=f"{config.prefix}-{stamp}-{index}@example.com",
            password_hash=password_hash,
            role=UserRole.MENTOR.value,
            application_status=ApplicationStatus.APPROVED.value,
            approved_at=utcnow(),
            is_active=True,
            mentor_capacity=settings.MATCH_DEFAULT_MENTOR_CAPACITY,
            active_mentees_count=0,
        )
        db.add(mentor)
        db.flush()
        db.add(models.UserProfile(
            user_id=mentor.id,
            display_name=name,
            program=getattr(profile, "program", None),
            major=getattr(profile, "major", None),
            expertise_areas=expertise,
            skills=expertise,
            interests=interests,
            availability_slots=availability,
        ))
        created.append(mentor)

    db.commit()
    return created


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed mentors that match a given mentee.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--mentee-id", type=int)
    target.add_argument("--mentee-email")
    parser.add_argument("--count", type=int, default=3)
    parser.add_argument("--prefix", default="seed-mentor")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable picks")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = SeedConfig(
        mentee_id=args.mentee_id,
        mentee_email=args.mentee_email,
        count=max(1, args.count),
        prefix=args.prefix,
        seed=args.seed,
    )

    db = SessionLocal()
    try:
        mentors = seed_mentors(db, config)
        for mentor in mentors:
            print(f"Created mentor {mentor.id} ({mentor.email})")
    except Exception as exc:
        db.rollback()
        print(f"Seeding failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"Created {len(mentors)} mentors. Password: {config.password}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
