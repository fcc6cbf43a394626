from pydantic import BaseModel, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime


class NotificationResponse(BaseModel):
    """Схема уведомления"""
    uuid: uuid.UUID
    user_id: str
    type: str
    title: str
    message: str
    link: Optional[str] = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread: int
