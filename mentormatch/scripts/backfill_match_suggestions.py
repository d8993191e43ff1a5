"""
Generate match suggestions for every approved mentor (or one).

Usage:
  python -m mentormatch.scripts.backfill_match_suggestions
  python -m mentormatch.scripts.backfill_match_suggestions --mentor-id 12 --limit 5
  python -m mentormatch.scripts.backfill_match_suggestions --no-expire
"""

import argparse
import logging
import sys
from typing import List, Optional

from mentormatch.config import settings
from mentormatch.database import SessionLocal
from mentormatch.services.backfill import (
    BackfillConfig,
    generate_suggestions_for_all_mentors,
    generate_suggestions_for_mentor_run,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Backfill mentor match suggestions.")
    parser.add_argument("--mentor-id", type=int, default=None, help="Only process this mentor")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help=f"Suggestions per mentor (default {settings.MATCH_SUGGESTION_LIMIT})",
    )
    parser.add_argument(
        "--no-expire",
        dest="expire_stale",
        action="store_false",
        help="Skip expiring stale suggestions before generating",
    )
    return parser


def parse_config(argv: Optional[List[str]] = None) -> BackfillConfig:
    args = build_parser().parse_args(argv)
    return BackfillConfig(limit=args.limit, mentor_id=args.mentor_id, expire_stale=args.expire_stale)


def run(config: BackfillConfig) -> int:
    db = SessionLocal()
    try:
        if config.mentor_id is not None:
            summary = generate_suggestions_for_mentor_run(db, config)
        else:
            summary = generate_suggestions_for_all_mentors(db, config)
    finally:
        db.close()

    for mentor_run in summary.runs:
        if mentor_run.ok:
            print(
                f"mentor {mentor_run.mentor_id}: {mentor_run.generated} suggestions "
                f"({mentor_run.created} new, {mentor_run.updated} refreshed)"
            )
        else:
            print(f"mentor {mentor_run.mentor_id}: FAILED {mentor_run.error}", file=sys.stderr)

    print(
        f"Processed {summary.mentors_processed} mentors: {summary.created} created, "
        f"{summary.updated} updated, {summary.expired} expired, {summary.failures} failures"
    )
    return 1 if summary.failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    try:
        return run(parse_config(argv))
    except Exception as exc:
        print(f"Backfill failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
