from app.db.models.project import Project
from app.db.models.notification import Notification

__all__ = [
    "Project",
    "Notification"
]
