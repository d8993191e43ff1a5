import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mentormatch import models
from mentormatch.crud import match as match_crud
from mentormatch.database import Base
from mentormatch.exceptions import CapacityExceededError, InvalidStateError, NotFoundError
from mentormatch.models.match import MatchStatus
from mentormatch.services import match_lifecycle
from mentormatch.services.match_lifecycle import MatchAction
from mentormatch.utils.clock import utcnow

from conftest import create_user

TERMINAL_STATUSES = [
    MatchStatus.MENTOR_DECLINED,
    MatchStatus.MENTEE_DECLINED,
    MatchStatus.REJECTED,
    MatchStatus.EXPIRED,
    MatchStatus.CONNECTED,
]


def _suggestion(db, mentor, mentee, status=MatchStatus.SUGGESTED, expires_in=timedelta(days=14), **kwargs):
    now = utcnow()
    suggestion = models.MatchSuggestion(
        mentor_id=mentor.id,
        mentee_id=mentee.id,
        status=status,
        score=70,
        mentee_snapshot={"goals": "learn react", "program": "cs"},
        expires_at=now + expires_in,
        created_at=now,
        updated_at=now,
        **kwargs,
    )
    db.add(suggestion)
    db.commit()
    db.refresh(suggestion)
    return suggestion


def _audit_actions(db, suggestion_id):
    return [audit.action for audit in match_crud.list_audits(db, suggestion_id)]


# ======================
# STATE MACHINE
# ======================

def test_transition_table_lookup():
    assert match_lifecycle.next_status(MatchStatus.SUGGESTED, MatchAction.MENTOR_ACCEPT) == MatchStatus.MENTOR_ACCEPTED
    assert match_lifecycle.next_status(MatchStatus.MENTOR_ACCEPTED, MatchAction.MENTEE_ACCEPT) == MatchStatus.MENTEE_ACCEPTED
    assert match_lifecycle.next_status(MatchStatus.MENTEE_ACCEPTED, MatchAction.CONNECT) == MatchStatus.CONNECTED
    assert not match_lifecycle.can_transition(MatchStatus.SUGGESTED, MatchAction.MENTEE_ACCEPT)

    with pytest.raises(InvalidStateError) as exc:
        match_lifecycle.next_status(MatchStatus.SUGGESTED, MatchAction.MENTEE_DECLINE)
    assert exc.value.code == "MATCH_NOT_ACTIONABLE"


@pytest.mark.parametrize("status", TERMINAL_STATUSES)
@pytest.mark.parametrize("action", list(MatchAction))
def test_terminal_states_reject_every_action(status, action):
    assert status.is_terminal
    with pytest.raises(InvalidStateError):
        match_lifecycle.next_status(status, action)


@pytest.mark.parametrize("status", TERMINAL_STATUSES)
def test_terminal_suggestion_is_not_mutated(db_session, make_mentor, make_mentee, status):
    mentor = make_mentor()
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee, status=status)
    before = (suggestion.status, suggestion.updated_at, suggestion.notes)

    with pytest.raises(InvalidStateError):
        match_lifecycle.mentor_accept(db_session, suggestion.id, mentor.id, note="late")
    with pytest.raises(InvalidStateError):
        match_lifecycle.mentee_accept(db_session, suggestion.id, mentee.id)
    with pytest.raises(InvalidStateError):
        match_lifecycle.mentee_decline(db_session, suggestion.id, mentee.id)

    db_session.refresh(suggestion)
    assert (suggestion.status, suggestion.updated_at, suggestion.notes) == before
    assert _audit_actions(db_session, suggestion.id) == []


# ======================
# MENTOR RESPONSES
# ======================

def test_mentor_accept_moves_to_mentor_accepted_and_notifies(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee)

    result = match_lifecycle.mentor_accept(db_session, suggestion.id, mentor.id, note="  Happy to help  ")

    assert result.status == MatchStatus.MENTOR_ACCEPTED
    assert result.suggestion.notes == "Happy to help"
    assert _audit_actions(db_session, suggestion.id) == ["mentor_accept"]
    notification = db_session.query(models.Notification).filter(
        models.Notification.recipient_id == mentee.id
    ).one()
    assert notification.event_type == "match_response"


def test_mentor_accept_blocked_when_mentor_full(db_session, make_mentor, make_mentee):
    mentor = make_mentor(capacity=1, active=1)
    suggestion = _suggestion(db_session, mentor, make_mentee())

    with pytest.raises(CapacityExceededError) as exc:
        match_lifecycle.mentor_accept(db_session, suggestion.id, mentor.id)

    assert exc.value.code == "MENTOR_CAPACITY_REACHED"
    db_session.refresh(suggestion)
    assert suggestion.status == MatchStatus.SUGGESTED


def test_mentor_cannot_act_on_other_mentors_suggestion(db_session, make_mentor, make_mentee):
    owner = make_mentor("owner@uni.edu")
    stranger = make_mentor("stranger@uni.edu")
    suggestion = _suggestion(db_session, owner, make_mentee())

    with pytest.raises(NotFoundError) as exc:
        match_lifecycle.mentor_accept(db_session, suggestion.id, stranger.id)
    assert exc.value.code == "MATCH_NOT_FOUND"


def test_mentor_decline_records_reason(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee)

    result = match_lifecycle.mentor_decline(db_session, suggestion.id, mentor.id, reason="No time this term")

    assert result.status == MatchStatus.MENTOR_DECLINED
    assert result.suggestion.details["decline_reason"] == "No time this term"
    audit = db_session.query(models.MatchAudit).filter(
        models.MatchAudit.match_suggestion_id == suggestion.id
    ).one()
    assert audit.reason == "No time this term"
    assert audit.actor_role == "mentor"


def test_mentor_decline_after_accept_is_invalid(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    suggestion = _suggestion(db_session, mentor, make_mentee(), status=MatchStatus.MENTOR_ACCEPTED)

    with pytest.raises(InvalidStateError):
        match_lifecycle.mentor_decline(db_session, suggestion.id, mentor.id)


# ======================
# MENTEE RESPONSES
# ======================

def test_mentee_accept_connects_and_takes_a_slot(db_session, make_mentor, make_mentee):
    mentor = make_mentor(capacity=2, active=0)
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee, status=MatchStatus.MENTOR_ACCEPTED)

    result = match_lifecycle.mentee_accept(db_session, suggestion.id, mentee.id)

    assert result.status == MatchStatus.CONNECTED
    assert result.mentorship.mentor_id == mentor.id
    assert result.mentorship.mentee_id == mentee.id
    assert result.mentorship.goals == "learn react"
    assert result.mentorship.program == "cs"
    db_session.refresh(mentor)
    assert mentor.active_mentees_count == 1
    assert _audit_actions(db_session, suggestion.id) == ["mentee_accept", "connected"]
    connected = db_session.query(models.MatchAudit).filter(
        models.MatchAudit.match_suggestion_id == suggestion.id,
        models.MatchAudit.action == "connected",
    ).one()
    assert (connected.capacity_before, connected.capacity_after) == (0, 1)
    confirmations = db_session.query(models.Notification).filter(
        models.Notification.event_type == "match_confirmed"
    ).all()
    assert sorted(n.recipient_id for n in confirmations) == sorted([mentor.id, mentee.id])


def test_mentee_accept_on_full_mentor_keeps_mentor_accepted(db_session, make_mentor, make_mentee):
    mentor = make_mentor(capacity=2, active=2)
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee, status=MatchStatus.MENTOR_ACCEPTED)

    with pytest.raises(CapacityExceededError):
        match_lifecycle.mentee_accept(db_session, suggestion.id, mentee.id)

    db_session.refresh(suggestion)
    db_session.refresh(mentor)
    assert suggestion.status == MatchStatus.MENTOR_ACCEPTED
    assert mentor.active_mentees_count == 2
    assert db_session.query(models.Mentorship).count() == 0


def test_mentee_accept_requires_mentor_accept_first(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee)

    with pytest.raises(InvalidStateError):
        match_lifecycle.mentee_accept(db_session, suggestion.id, mentee.id)

    db_session.refresh(mentor)
    assert mentor.active_mentees_count == 0


def test_mentee_decline_notifies_mentor(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    mentee = make_mentee()
    suggestion = _suggestion(db_session, mentor, mentee, status=MatchStatus.MENTOR_ACCEPTED)

    result = match_lifecycle.mentee_decline(db_session, suggestion.id, mentee.id, reason="Found someone")

    assert result.status == MatchStatus.MENTEE_DECLINED
    notification = db_session.query(models.Notification).filter(
        models.Notification.recipient_id == mentor.id
    ).one()
    assert notification.event_type == "match_declined"


def test_admin_reject_notifies_both_parties(db_session, make_mentor, make_mentee, make_admin):
    mentor = make_mentor()
    mentee = make_mentee()
    admin = make_admin()
    suggestion = _suggestion(db_session, mentor, mentee, status=MatchStatus.MENTOR_ACCEPTED)

    result = match_lifecycle.reject_suggestion(db_session, suggestion.id, admin.id, reason="Conflict of interest")

    assert result.status == MatchStatus.REJECTED
    assert db_session.query(models.Notification).filter(
        models.Notification.match_suggestion_id == suggestion.id
    ).count() == 2


# ======================
# EXPIRY
# ======================

def test_acting_on_stale_suggestion_expires_it(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    suggestion = _suggestion(db_session, mentor, make_mentee(), expires_in=timedelta(days=-1))

    with pytest.raises(InvalidStateError) as exc:
        match_lifecycle.mentor_accept(db_session, suggestion.id, mentor.id)

    assert exc.value.code == "MATCH_EXPIRED"
    db_session.refresh(suggestion)
    assert suggestion.status == MatchStatus.EXPIRED
    assert _audit_actions(db_session, suggestion.id) == ["expired"]


def test_expire_stale_suggestions_only_touches_expirable_rows(db_session, make_mentor, make_mentee):
    mentor = make_mentor()
    stale = _suggestion(db_session, mentor, make_mentee("a@uni.edu"), expires_in=timedelta(days=-2))
    stale_accepted = _suggestion(
        db_session, mentor, make_mentee("b@uni.edu"),
        status=MatchStatus.MENTOR_ACCEPTED, expires_in=timedelta(days=-2),
    )
    fresh = _suggestion(db_session, mentor, make_mentee("c@uni.edu"))
    closed = _suggestion(
        db_session, mentor, make_mentee("d@uni.edu"),
        status=MatchStatus.CONNECTED, expires_in=timedelta(days=-2),
    )

    assert match_lifecycle.expire_stale_suggestions(db_session, mentor_id=mentor.id) == 2

    for row in (stale, stale_accepted, fresh, closed):
        db_session.refresh(row)
    assert stale.status == MatchStatus.EXPIRED
    assert stale_accepted.status == MatchStatus.EXPIRED
    assert fresh.status == MatchStatus.SUGGESTED
    assert closed.status == MatchStatus.CONNECTED


# ======================
# CONCURRENCY
# ======================

def test_parallel_mentee_accepts_never_exceed_capacity(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'capacity.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)

    capacity = 2
    setup = SessionLocal()
    try:
        mentor = create_user(setup, role="mentor", email="busy@uni.edu", capacity=capacity)
        pairs = []
        for index in range(6):
            mentee = create_user(setup, role="mentee", email=f"mentee{index}@uni.edu")
            suggestion = _suggestion(setup, mentor, mentee, status=MatchStatus.MENTOR_ACCEPTED)
            pairs.append((suggestion.id, mentee.id))
        mentor_id = mentor.id
    finally:
        setup.close()

    barrier = threading.Barrier(len(pairs))
    outcomes = []
    lock = threading.Lock()

    def attempt(suggestion_id, mentee_id):
        db = SessionLocal()
        try:
            barrier.wait()
            try:
                match_lifecycle.mentee_accept(db, suggestion_id, mentee_id)
                outcome = "connected"
            except CapacityExceededError:
                outcome = "full"
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=pair) for pair in pairs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    check = SessionLocal()
    try:
        mentor = check.get(models.User, mentor_id)
        assert mentor.active_mentees_count == capacity
        assert check.query(models.Mentorship).count() == capacity
        assert check.query(models.MatchSuggestion).filter(
            models.MatchSuggestion.status == MatchStatus.CONNECTED
        ).count() == capacity
    finally:
        check.close()
        engine.dispose()

    assert sorted(outcomes) == ["connected"] * capacity + ["full"] * (len(pairs) - capacity)
