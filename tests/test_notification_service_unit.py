from __future__ import annotations

import threading

import pytest
from fastapi import HTTPException

from mentormatch.api.notification import (
    get_my_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)
from mentormatch.services import notification_service


def _notify(db, user, event_type="match_suggestion", message="New matches"):
    notification = notification_service.create_notification(
        db,
        recipient_id=user.id,
        actor_id=None,
        match_suggestion_id=None,
        event_type=event_type,
        title="Heads up",
        message=message,
    )
    db.commit()
    return notification


def test_notification_service_crud_flow(db_session, make_mentee):
    user = make_mentee()
    _notify(db_session, user, "match_response", "Accepted")
    _notify(db_session, user, "match_confirmed", "Confirmed")

    unread = notification_service.list_user_notifications(db_session, user_id=user.id, unread_only=True, limit=50)
    assert len(unread) == 2
    assert notification_service.get_unread_count(db_session, user_id=user.id) == 2

    one = notification_service.mark_notification_read(db_session, user_id=user.id, notification_id=unread[0].id)
    assert one is not None
    assert one.is_read is True
    assert notification_service.get_unread_count(db_session, user_id=user.id) == 1

    assert notification_service.mark_all_notifications_read(db_session, user_id=user.id) == 1
    assert notification_service.get_unread_count(db_session, user_id=user.id) == 0


def test_notification_routes(db_session, make_mentor, make_mentee):
    owner = make_mentee()
    stranger = make_mentor()
    notification = _notify(db_session, owner)

    listing = get_my_notifications(unread_only=False, limit=50, current_user=owner, db=db_session)
    assert listing.unread_count == 1
    assert listing.notifications[0].event_type == "match_suggestion"

    with pytest.raises(HTTPException) as exc:
        mark_notification_read(notification_id=notification.id, current_user=stranger, db=db_session)
    assert exc.value.status_code == 404

    marked = mark_notification_read(notification_id=notification.id, current_user=owner, db=db_session)
    assert marked.id == notification.id
    assert marked.is_read is True
    assert mark_all_notifications_read(current_user=owner, db=db_session)["updated"] == 0


def test_dispatch_email_sends_in_background(db_session, make_mentee, monkeypatch):
    user = make_mentee("mailok@uni.edu")
    notification = _notify(db_session, user, "match_confirmed", "You are matched")
    delivered = threading.Event()
    payload = {}

    def fake_send_email(**kwargs):
        payload.update(kwargs)
        delivered.set()
        return True

    monkeypatch.setattr(notification_service, "is_email_enabled", lambda: True)
    monkeypatch.setattr(notification_service, "send_email", fake_send_email)

    assert notification_service.dispatch_email_for_notification(db_session, notification) is True
    assert delivered.wait(timeout=5)
    assert payload["to_email"] == "mailok@uni.edu"
    assert payload["subject"] == notification_service.EMAIL_SUBJECT_BY_EVENT["match_confirmed"]
    assert "You are matched" in payload["body_text"]


def test_dispatch_email_disabled_or_failing_is_non_blocking(db_session, make_mentee, monkeypatch):
    user = make_mentee("safe@uni.edu")
    notification = _notify(db_session, user)

    monkeypatch.setattr(notification_service, "is_email_enabled", lambda: False)
    assert notification_service.dispatch_email_for_notification(db_session, notification) is False

    def broken_enabled():
        raise RuntimeError("SMTP config unreadable")

    monkeypatch.setattr(notification_service, "is_email_enabled", broken_enabled)
    assert notification_service.dispatch_email_for_notification(db_session, notification) is False
    assert notification_service.dispatch_all(db_session, [notification, None]) == 0


def test_compose_email_points_to_next_step(db_session, make_mentee):
    user = make_mentee()
    notification = _notify(db_session, user, "match_response", "Mentor accepted")
    notification.match_suggestion_id = 42

    subject, body = notification_service.compose_email(notification, "  ")

    assert subject == "Your mentor accepted the match"
    assert body.startswith("Hi there,")
    assert "Match reference: #42" in body
    assert notification_service.NEXT_STEP_BY_EVENT["match_response"] in body

    notification.event_type = "something_new"
    assert notification_service.compose_email(notification, "Ada")[0] == notification_service.DEFAULT_SUBJECT
