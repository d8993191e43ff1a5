"""
In-app notification inbox.
Match events (new suggestions, accepts, declines, confirmations) and
application reviews land here; email copies are best effort.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.database import get_db
from mentormatch.schemas.notification import NotificationInbox, NotificationResponse
from mentormatch.services import notification_service
from mentormatch.utils.security import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/my", response_model=NotificationInbox)
def get_my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Newest first, with the unread total for the badge."""
    inbox = notification_service.list_user_notifications(
        db, user_id=current_user.id, unread_only=unread_only, limit=limit
    )
    return NotificationInbox(
        unread_count=notification_service.get_unread_count(db, user_id=current_user.id),
        notifications=[NotificationResponse.model_validate(item) for item in inbox],
    )


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_notification_read(
        db, user_id=current_user.id, notification_id=notification_id
    )
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationResponse.model_validate(notification)


@router.patch("/read-all")
def mark_all_notifications_read(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = notification_service.mark_all_notifications_read(db, user_id=current_user.id)
    return {"updated": updated}
