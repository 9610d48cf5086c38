# labdesk/notifications/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from labdesk.db.models import NotificationType, RecipientType


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: NotificationType
    title: str
    message: str
    recipient_type: RecipientType
    patient_id: Optional[str] = None
    booking_id: Optional[str] = None
    report_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationList(BaseModel):
    notifications: List[NotificationOut]
    unread_count: int
