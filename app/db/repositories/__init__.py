from app.db.repositories.project_repository import ProjectRepository
from app.db.repositories.notification_repository import NotificationRepository

__all__ = [
    "ProjectRepository",
    "NotificationRepository"
]
