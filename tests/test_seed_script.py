import pytest

from mentormatch import models
from mentormatch.scripts.seed_matching_mentees import SeedConfig as MenteeSeedConfig
from mentormatch.scripts.seed_matching_mentees import build_parser as build_mentee_parser
from mentormatch.scripts.seed_matching_mentees import seed_mentees
from mentormatch.scripts.seed_matching_mentors import SeedConfig, build_parser, seed_mentors
from mentormatch.services import match_service


def test_seeded_mentors_match_the_mentee(db_session, make_mentee, monkeypatch):
    monkeypatch.setattr(
        "mentormatch.scripts.seed_matching_mentors.get_password_hash", lambda password: "hashed"
    )
    mentee = make_mentee(
        interests=["react", "sql"],
        mentoring_goals="system design",
        availability_slots=[{"day": "thu", "start": "17:00", "end": "18:00"}],
    )

    mentors = seed_mentors(db_session, SeedConfig(mentee_id=mentee.id, count=2, seed=7))

    assert len(mentors) == 2
    for mentor in mentors:
        assert mentor.role == "mentor"
        assert mentor.application_status == "approved"
        assert set(mentor.profile.expertise_areas) <= {"react", "sql", "system design"}
        assert mentor.profile.availability_slots == [{"day": "thu", "start": "17:00", "end": "18:00"}]

    result = match_service.generate_suggestions_for_mentee(db_session, mentee.id)
    assert {s.mentor_id for s in result.suggestions} == {m.id for m in mentors}
    assert all(s.availability_score == 100 for s in result.suggestions)


def test_seed_requires_existing_mentee(db_session, make_mentor):
    mentor = make_mentor()
    with pytest.raises(ValueError):
        seed_mentors(db_session, SeedConfig(mentee_id=mentor.id))


def test_seed_cli_requires_a_target():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
    args = build_parser().parse_args(["--mentee-email", "ada@uni.edu", "--count", "4"])
    assert (args.mentee_email, args.count, args.prefix) == ("ada@uni.edu", 4, "seed-mentor")


def test_seeded_mentees_match_the_mentor(db_session, make_mentor, monkeypatch):
    monkeypatch.setattr(
        "mentormatch.scripts.seed_matching_mentees.get_password_hash", lambda password: "hashed"
    )
    mentor = make_mentor(
        name="Grace",
        expertise_areas=["react", "sql"],
        interests=["compilers"],
        program="Computer Science",
        availability_slots=[{"day": "tue", "start": "14:00", "end": "16:00"}],
    )

    mentees = seed_mentees(
        db_session, MenteeSeedConfig(mentor_email=mentor.email, count=3, seed=11, regenerate=True)
    )

    assert len(mentees) == 3
    for mentee in mentees:
        assert mentee.role == "mentee"
        assert mentee.application_status == "approved"
        assert mentee.email.startswith("seed-mentee-")
        assert set(mentee.profile.interests) <= {"react", "sql", "compilers"}
        assert mentee.profile.program == "Computer Science"
        assert mentee.profile.mentoring_goals == "Learn from Grace"
        assert mentee.profile.availability_slots == [{"day": "tue", "start": "14:00", "end": "16:00"}]

    suggested = db_session.query(models.MatchSuggestion).filter(
        models.MatchSuggestion.mentor_id == mentor.id
    ).all()
    assert {s.mentee_id for s in suggested} == {m.id for m in mentees}


def test_mentee_seed_requires_existing_mentor(db_session, make_mentee):
    mentee = make_mentee()
    with pytest.raises(ValueError):
        seed_mentees(db_session, MenteeSeedConfig(mentor_id=mentee.id))


def test_mentee_seed_cli_flags():
    parser = build_mentee_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["--count", "2"])
    args = parser.parse_args(["--mentor-id", "3", "--regenerate"])
    assert (args.mentor_id, args.regenerate, args.prefix) == (3, True, "seed-mentee")
