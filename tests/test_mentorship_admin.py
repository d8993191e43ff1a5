import pytest
from fastapi import HTTPException

from mentormatch import models
from mentormatch.api import admin as admin_api
from mentormatch.models.match import MatchStatus
from mentormatch.models.mentorship import MentorshipStatus
from mentormatch.schemas.mentorship import PairingUpdate
from mentormatch.services import match_lifecycle, match_service, mentorship_service
from mentormatch.utils.clock import utcnow


def _connect(db, mentor, mentee):
    now = utcnow()
    suggestion = models.MatchSuggestion(
        mentor_id=mentor.id,
        mentee_id=mentee.id,
        status=MatchStatus.MENTOR_ACCEPTED,
        score=80,
        mentee_snapshot={"goals": "ship a react app", "program": "cs"},
        created_at=now,
        updated_at=now,
    )
    db.add(suggestion)
    db.commit()
    return match_lifecycle.mentee_accept(db, suggestion.id, mentee.id).mentorship


def _patch(db, admin, mentorship_id, **fields):
    return admin_api.update_mentorship(
        mentorship_id=mentorship_id, payload=PairingUpdate(**fields), admin=admin, db=db
    )


def _list(db, admin, status=None, search=None, page=1, limit=20):
    return admin_api.list_mentorships(
        status=status, search=search, page=page, limit=limit, admin=admin, db=db
    )


def _status_notes(db, recipient_id):
    return db.query(models.Notification).filter(
        models.Notification.recipient_id == recipient_id,
        models.Notification.event_type == "mentorship_status",
    ).all()


# ======================
# STATUS CHANGES
# ======================

def test_completing_a_mentorship_frees_the_mentor(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    mentor = make_mentor(capacity=1)
    paired = make_mentee("paired@uni.edu")
    waiting = make_mentee("waiting@uni.edu")
    mentorship = _connect(db_session, mentor, paired)

    assert match_service.generate_suggestions_for_mentee(db_session, waiting.id).generated == 0

    response = _patch(db_session, admin, mentorship.id, status="completed", reason="Goals met")

    assert response.pairing.status == MentorshipStatus.COMPLETED
    assert response.capacity_delta == -1
    assert response.unchanged is False
    db_session.refresh(mentor)
    assert mentor.active_mentees_count == 0

    audit = db_session.query(models.MatchAudit).filter(
        models.MatchAudit.mentorship_id == mentorship.id
    ).one()
    assert audit.match_suggestion_id is None
    assert audit.action == "mentorship_completed"
    assert audit.actor_id == admin.id
    assert audit.reason == "Goals met"
    assert (audit.capacity_before, audit.capacity_after) == (1, 0)

    for recipient in (mentor, paired):
        notes = _status_notes(db_session, recipient.id)
        assert len(notes) == 1
        assert notes[0].title == "Mentorship completed"
        assert notes[0].message.endswith("Reason: Goals met")

    result = match_service.generate_suggestions_for_mentee(db_session, waiting.id)
    assert [s.mentor_id for s in result.suggestions] == [mentor.id]


def test_reactivating_past_capacity_is_refused(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    mentor = make_mentor(capacity=1)
    first = _connect(db_session, mentor, make_mentee("first@uni.edu"))
    _patch(db_session, admin, first.id, status="cancelled")
    _connect(db_session, mentor, make_mentee("second@uni.edu"))

    with pytest.raises(HTTPException) as exc:
        _patch(db_session, admin, first.id, status="active")

    assert exc.value.status_code == 409
    assert exc.value.detail["code"] == "MENTOR_CAPACITY_REACHED"
    db_session.refresh(mentor)
    assert mentor.active_mentees_count == 1
    assert db_session.get(models.Mentorship, first.id).status == MentorshipStatus.CANCELLED.value
    actions = [a.action for a in mentorship_service.get_mentorship_detail(db_session, first.id)[1]]
    assert actions == ["mentorship_cancelled"]


def test_reactivating_with_room_takes_a_slot(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    mentor = make_mentor(capacity=2)
    mentorship = _connect(db_session, mentor, make_mentee())
    _patch(db_session, admin, mentorship.id, status="completed")

    response = _patch(db_session, admin, mentorship.id, status="active")

    assert response.capacity_delta == 1
    db_session.refresh(mentor)
    assert mentor.active_mentees_count == 1


def test_pausing_keeps_the_slot(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    mentor = make_mentor(capacity=2)
    mentorship = _connect(db_session, mentor, make_mentee())

    paused = _patch(db_session, admin, mentorship.id, status="paused")
    assert paused.capacity_delta == 0
    cancelled = _patch(db_session, admin, mentorship.id, status="cancelled")
    assert cancelled.capacity_delta == -1

    db_session.refresh(mentor)
    assert mentor.active_mentees_count == 0


def test_capacity_delta_table():
    assert mentorship_service.capacity_delta(MentorshipStatus.ACTIVE, MentorshipStatus.COMPLETED) == -1
    assert mentorship_service.capacity_delta(MentorshipStatus.PAUSED, MentorshipStatus.ACTIVE) == 0
    assert mentorship_service.capacity_delta(MentorshipStatus.CANCELLED, MentorshipStatus.PAUSED) == 1
    assert mentorship_service.capacity_delta(MentorshipStatus.COMPLETED, MentorshipStatus.CANCELLED) == 0


# ======================
# FIELD EDITS
# ======================

def test_editing_notes_goals_and_program(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    mentor = make_mentor()
    mentee = make_mentee()
    mentorship = _connect(db_session, mentor, mentee)

    response = _patch(
        db_session, admin, mentorship.id, notes="  Meets fortnightly ", goals="", program="Data Science"
    )

    assert response.capacity_delta == 0
    assert response.pairing.notes == "Meets fortnightly"
    assert response.pairing.goals is None
    assert response.pairing.program == "Data Science"
    assert response.pairing.status == MentorshipStatus.ACTIVE
    audit = mentorship_service.get_mentorship_detail(db_session, mentorship.id)[1][0]
    assert audit.action == "mentorship_update"
    assert _status_notes(db_session, mentee.id) == []

    again = _patch(db_session, admin, mentorship.id, notes="Meets fortnightly", status="active")
    assert again.unchanged is True
    assert len(mentorship_service.get_mentorship_detail(db_session, mentorship.id)[1]) == 1


# ======================
# READS
# ======================

def test_list_filters_and_pages(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    grace = make_mentor("grace@uni.edu", name="Grace Hopper", capacity=5)
    alan = make_mentor("alan@uni.edu", name="Alan Turing", capacity=5)
    first = _connect(db_session, grace, make_mentee("ada@uni.edu", name="Ada Lovelace"))
    _connect(db_session, grace, make_mentee("linus@uni.edu"))
    _connect(db_session, alan, make_mentee("ken@uni.edu"))
    _patch(db_session, admin, first.id, status="paused")

    everything = _list(db_session, admin, limit=2)
    assert everything.meta.total == 3
    assert everything.meta.total_pages == 2
    assert len(everything.pairings) == 2
    assert everything.pairings[0].id == first.id

    paused = _list(db_session, admin, status=MentorshipStatus.PAUSED)
    assert [p.id for p in paused.pairings] == [first.id]

    by_name = _list(db_session, admin, search=" lovelace ")
    assert by_name.meta.search == "lovelace"
    assert [p.mentee.email for p in by_name.pairings] == ["ada@uni.edu"]

    by_mentor = _list(db_session, admin, search="grace@")
    assert by_mentor.meta.total == 2
    assert all(p.mentor.id == grace.id for p in by_mentor.pairings)

    assert _list(db_session, admin, page=3, limit=2).pairings == []


def test_detail_includes_parties_and_audit_trail(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    mentor = make_mentor(capacity=2)
    mentorship = _connect(db_session, mentor, make_mentee())
    _patch(db_session, admin, mentorship.id, status="paused", reason="Exams")
    _patch(db_session, admin, mentorship.id, status="active")

    detail = admin_api.get_mentorship(mentorship_id=mentorship.id, admin=admin, db=db_session)

    assert detail.pairing.mentor.active_mentees_count == 1
    assert detail.pairing.match_suggestion.status == MatchStatus.CONNECTED
    assert [entry.action for entry in detail.audit_trail] == ["mentorship_active", "mentorship_paused"]
    assert detail.audit_trail[1].reason == "Exams"


def test_unknown_mentorship_is_404(db_session, make_admin):
    admin = make_admin()

    with pytest.raises(HTTPException) as exc:
        admin_api.get_mentorship(mentorship_id=999, admin=admin, db=db_session)
    assert exc.value.status_code == 404
    assert exc.value.detail == {"code": "MENTORSHIP_NOT_FOUND", "message": "Mentorship not found"}

    with pytest.raises(HTTPException) as exc:
        _patch(db_session, admin, 999, status="completed")
    assert exc.value.status_code == 404


def test_mentor_capacity_overview(db_session, make_mentor, make_mentee, make_admin):
    admin = make_admin()
    roomy = make_mentor("roomy@uni.edu", capacity=4, active=1)
    full = make_mentor("full@uni.edu", capacity=2, active=2)
    make_mentee()

    overview = admin_api.list_mentor_capacities(admin=admin, db=db_session)

    assert overview.count == 2
    assert [m.id for m in overview.mentors] == [full.id, roomy.id]
    assert (overview.mentors[1].capacity, overview.mentors[1].active_mentees) == (4, 1)
    assert overview.mentors[1].remaining_slots == 3
    assert overview.mentors[0].remaining_slots == 0
