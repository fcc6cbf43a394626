from app.api.http.health import router as health_router
from app.api.http.projects import router as projects_router
from app.api.http.collaboration import router as collaboration_router
from app.api.http.notifications import router as notifications_router

__all__ = [
    "health_router",
    "projects_router",
    "collaboration_router",
    "notifications_router"
]
