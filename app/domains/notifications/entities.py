import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from app.domains.projects.entities import utcnow


class NotificationType(str, Enum):
    ASSIGNMENT = "assignment"
    UNASSIGNMENT = "unassignment"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    QUESTION_APPROVED = "question_approved"
    CHANGES_REQUESTED = "changes_requested"


@dataclass(frozen=True)
class NotificationMessage:
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "link": self.link,
        }


@dataclass(frozen=True)
class NotificationEvent:
    """Уведомление, ожидающее отправки после сохранения проекта"""
    user_id: str
    message: NotificationMessage


class Notification:
    """Сохранённое уведомление пользователя"""

    def __init__(
        self,
        uuid: uuid.UUID,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        read: bool = False,
        created_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.user_id = user_id
        self.type = type
        self.title = title
        self.message = message
        self.link = link
        self.read = read
        self.created_at = created_at or utcnow()

    @classmethod
    def create_notification(cls, user_id: str, message: NotificationMessage) -> "Notification":
        return cls(
            uuid=uuid.uuid4(),
            user_id=user_id,
            type=message.type,
            title=message.title,
            message=message.message,
            link=message.link,
        )

    def __repr__(self) -> str:
        return f"Notification(user={self.user_id}, type={self.type.value}, read={self.read})"
