from datetime import timedelta

import pytest

from mentormatch import models
from mentormatch.scripts import backfill_match_suggestions
from mentormatch.services import backfill, match_service
from mentormatch.services.backfill import BackfillConfig
from mentormatch.models.match import MatchStatus
from mentormatch.utils.clock import utcnow


def test_backfill_runs_every_approved_mentor_in_id_order(db_session, make_mentor, make_mentee):
    first = make_mentor("first@uni.edu")
    second = make_mentor("second@uni.edu")
    make_mentor("pending@uni.edu", status="pending")
    make_mentee("a@uni.edu")
    make_mentee("b@uni.edu")

    summary = backfill.generate_suggestions_for_all_mentors(db_session, BackfillConfig())

    assert [run.mentor_id for run in summary.runs] == [first.id, second.id]
    assert summary.created == 4
    assert summary.failures == 0
    assert summary.mentors_processed == 2

    rerun = backfill.generate_suggestions_for_all_mentors(db_session, BackfillConfig())
    assert rerun.created == 0
    assert rerun.updated == 4


def test_backfill_continues_past_a_failing_mentor(db_session, make_mentor, make_mentee, monkeypatch):
    broken = make_mentor("broken@uni.edu")
    healthy = make_mentor("healthy@uni.edu")
    make_mentee()

    original = match_service.generate_suggestions_for_mentor

    def flaky(db, mentor_id, limit=None, **kwargs):
        if mentor_id == broken.id:
            raise RuntimeError("scoring exploded")
        return original(db, mentor_id, limit, **kwargs)

    monkeypatch.setattr(match_service, "generate_suggestions_for_mentor", flaky)

    summary = backfill.generate_suggestions_for_all_mentors(db_session, BackfillConfig())

    assert summary.failures == 1
    failed = next(run for run in summary.runs if run.mentor_id == broken.id)
    assert failed.error == "scoring exploded"
    ok = next(run for run in summary.runs if run.mentor_id == healthy.id)
    assert ok.created == 1
    assert summary.as_dict()["failures"] == 1


def test_backfill_expires_stale_rows_first(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    make_mentee()
    match_service.generate_suggestions_for_mentor(db_session, mentor.id, now=utcnow() - timedelta(days=30))

    summary = backfill.generate_suggestions_for_all_mentors(db_session, BackfillConfig())

    assert summary.expired == 1
    assert summary.created == 1
    statuses = sorted(row.status.value for row in db_session.query(models.MatchSuggestion).all())
    assert statuses == [MatchStatus.EXPIRED.value, MatchStatus.SUGGESTED.value]


def test_single_mentor_run(db_session, make_mentor, make_mentee):
    make_mentor("skip@uni.edu")
    target = make_mentor("target@uni.edu")
    make_mentee()

    summary = backfill.generate_suggestions_for_mentor_run(
        db_session, BackfillConfig(mentor_id=target.id, limit=1)
    )

    assert [run.mentor_id for run in summary.runs] == [target.id]
    assert db_session.query(models.MatchSuggestion).count() == 1

    with pytest.raises(ValueError):
        backfill.generate_suggestions_for_mentor_run(db_session, BackfillConfig())


def test_cli_builds_config_from_arguments():
    config = backfill_match_suggestions.parse_config(["--mentor-id", "7", "--limit", "3", "--no-expire"])
    assert config == BackfillConfig(limit=3, mentor_id=7, expire_stale=False)

    defaults = backfill_match_suggestions.parse_config([])
    assert defaults == BackfillConfig()
