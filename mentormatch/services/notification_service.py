from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.models.notification import Notification
from mentormatch.utils.email import is_email_enabled, send_email

logger = logging.getLogger(__name__)


EMAIL_SUBJECT_BY_EVENT = {
    "match_suggestion": "New match suggestions on MentorMatch",
    "match_response": "Your mentor accepted the match",
    "match_declined": "Match update on MentorMatch",
    "match_confirmed": "Mentorship confirmed on MentorMatch",
    "mentorship_status": "Your MentorMatch mentorship was updated",
    "application_approved": "Your MentorMatch application was approved",
    "application_rejected": "Your MentorMatch application was reviewed",
}
DEFAULT_SUBJECT = "New notification from MentorMatch"

# Where the email points the reader for each event.
NEXT_STEP_BY_EVENT = {
    "match_suggestion": "Review your suggested matches in MentorMatch.",
    "match_response": "Accept or decline the mentor from your match list.",
    "match_confirmed": "Reach out to your new match to plan the first session.",
    "application_approved": "You can now receive match suggestions.",
}


def _recipient_scope(db: Session, user_id: int):
    return db.query(Notification).filter(Notification.recipient_id == user_id)


def list_user_notifications(
    db: Session,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    query = _recipient_scope(db, user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    newest_first = (Notification.created_at.desc(), Notification.id.desc())
    return query.order_by(*newest_first).limit(limit).all()


def get_unread_count(db: Session, *, user_id: int) -> int:
    unread = _recipient_scope(db, user_id).filter(Notification.is_read.is_(False))
    return int(unread.with_entities(func.count(Notification.id)).scalar() or 0)


def mark_notification_read(db: Session, *, user_id: int, notification_id: int) -> Optional[Notification]:
    # Scoped to the recipient so one user cannot mark another user's inbox.
    notification = _recipient_scope(db, user_id).filter(Notification.id == notification_id).first()
    if notification is None:
        return None
    if not notification.is_read:
        notification.is_read = True
        db.commit()
    return notification


def mark_all_notifications_read(db: Session, *, user_id: int) -> int:
    changed = _recipient_scope(db, user_id).filter(
        Notification.is_read.is_(False)
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return int(changed or 0)


def create_notification(
    db: Session,
    *,
    recipient_id: int,
    actor_id: Optional[int],
    match_suggestion_id: Optional[int],
    event_type: str,
    title: str,
    message: str,
) -> Notification:
    """Stage an in-app notification in the caller's transaction.

    Nothing is committed here; the match operation that triggered the
    notification commits it together with its own state change, and
    only then hands it to :func:`dispatch_all` for email.
    """
    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        match_suggestion_id=match_suggestion_id,
        event_type=event_type,
        title=title,
        message=message,
    )
    db.add(notification)
    db.flush()
    return notification


def compose_email(notification: Notification, recipient_name: Optional[str]) -> Tuple[str, str]:
    """Return ``(subject, body_text)`` for a notification email."""
    subject = EMAIL_SUBJECT_BY_EVENT.get(notification.event_type, DEFAULT_SUBJECT)
    greeting = (recipient_name or "").strip() or "there"
    lines = [f"Hi {greeting},", "", notification.title, notification.message]
    if notification.match_suggestion_id:
        lines.append(f"Match reference: #{notification.match_suggestion_id}")
    next_step = NEXT_STEP_BY_EVENT.get(notification.event_type)
    if next_step:
        lines.extend(["", next_step])
    lines.extend(["", "The MentorMatch team"])
    return subject, "\n".join(lines)


def _deliver(to_email: str, subject: str, body_text: str, notification_id: Optional[int]) -> None:
    if not send_email(to_email=to_email, subject=subject, body_text=body_text):
        logger.info("Email for notification %s was not delivered", notification_id)


def dispatch_email_for_notification(db: Session, notification: Notification) -> bool:
    """
    Queue email delivery for a committed notification on a daemon thread.
    Returns False when email is off or the recipient has no address.
    Never raises.
    """
    notification_id = getattr(notification, "id", None)
    try:
        if not is_email_enabled():
            return False

        recipient = db.get(models.User, notification.recipient_id)
        if recipient is None or not recipient.email:
            return False

        subject, body_text = compose_email(notification, recipient.name)
        threading.Thread(
            target=_deliver,
            args=(recipient.email, subject, body_text, notification_id),
            name=f"notification-email-{notification_id}",
            daemon=True,
        ).start()
        return True
    except Exception as exc:
        logger.warning("Could not queue email for notification %s: %s", notification_id, exc)
        return False


def dispatch_all(db: Session, notifications: Iterable[Optional[Notification]]) -> int:
    """Fire-and-forget email for notifications staged by a committed operation."""
    return sum(
        1
        for notification in notifications
        if notification is not None and dispatch_email_for_notification(db, notification)
    )
