from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: int
    actor_id: Optional[int] = None
    match_suggestion_id: Optional[int] = None
    event_type: str
    title: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None


class NotificationInbox(BaseModel):
    unread_count: int
    notifications: List[NotificationResponse]
