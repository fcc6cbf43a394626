import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.notification_repository import NotificationRepository
from app.domains.notifications.entities import Notification, NotificationEvent, NotificationMessage

logger = logging.getLogger(__name__)


class NotificationService:
    """Сервис доставки уведомлений пользователям"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.notification_repository = NotificationRepository(session)

    async def notify(self, user_id: str, message: NotificationMessage) -> Notification:
        """Сохранение уведомления для пользователя"""
        notification = Notification.create_notification(user_id, message)
        return await self.notification_repository.create(notification)

    async def dispatch(self, events: List[NotificationEvent]) -> int:
        """Отправка очереди уведомлений; ошибки только логируются"""
        delivered = 0
        for event in events:
            try:
                await self.notify(event.user_id, event.message)
                delivered += 1
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Failed to deliver {event.message.type.value} notification to {event.user_id}: {e}")
        return delivered

    async def get_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        return await self.notification_repository.get_for_user(user_id, unread_only)

    async def mark_all_read(self, user_id: str) -> int:
        return await self.notification_repository.mark_all_read(user_id)
