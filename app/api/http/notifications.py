from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_actor
from app.core.db import get_db
from app.domains.identity.entities import Actor
from app.domains.notifications.schemas import NotificationListResponse, NotificationResponse
from app.domains.notifications.services import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationListResponse)
async def get_notifications(
    unread_only: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Уведомления текущего участника"""
    notifications = await NotificationService(db).get_notifications(actor.uid, unread_only)
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                uuid=n.uuid,
                user_id=n.user_id,
                type=n.type.value,
                title=n.title,
                message=n.message,
                link=n.link,
                read=n.read,
                created_at=n.created_at
            )
            for n in notifications
        ],
        unread=sum(1 for n in notifications if not n.read)
    )


@router.post("/read")
async def mark_notifications_read(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Отметить все уведомления прочитанными"""
    updated = await NotificationService(db).mark_all_read(actor.uid)
    return {"updated": updated}
