from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    subscription_id: str
    reminder_id: str
    title: str
    message: str
    days_until_expiry: int
    notify_date: date
    read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread: int


class ActivityLogResponse(BaseModel):
    id: int
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
