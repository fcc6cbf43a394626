from app.domains.notifications.entities import (
    Notification, NotificationEvent, NotificationMessage, NotificationType
)
from app.domains.notifications.schemas import NotificationResponse, NotificationListResponse
from app.domains.notifications.services import NotificationService

__all__ = [
    "Notification", "NotificationEvent", "NotificationMessage", "NotificationType",
    "NotificationResponse", "NotificationListResponse",
    "NotificationService"
]
