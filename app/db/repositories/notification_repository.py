from typing import List, TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.notification import Notification as NotificationModel

if TYPE_CHECKING:
    from app.domains.notifications.entities import Notification


class NotificationRepository:
    """Репозиторий уведомлений пользователей"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, notification: "Notification") -> "Notification":
        db_notification = NotificationModel(
            uuid=notification.uuid,
            user_id=notification.user_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            read=notification.read,
        )
        self.session.add(db_notification)
        await self.session.commit()
        await self.session.refresh(db_notification)
        return self._to_domain(db_notification)

    async def get_for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List["Notification"]:
        """Уведомления пользователя, новые сначала"""
        query = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            query = query.where(NotificationModel.read.is_(False))

        result = await self.session.execute(
            query.order_by(NotificationModel.created_at.desc()).limit(limit)
        )
        return [self._to_domain(n) for n in result.scalars().all()]

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount

    def _to_domain(self, db_notification: NotificationModel) -> "Notification":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.notifications.entities import Notification, NotificationType

        return Notification(
            uuid=db_notification.uuid,
            user_id=db_notification.user_id,
            type=NotificationType(db_notification.type),
            title=db_notification.title,
            message=db_notification.message,
            link=db_notification.link,
            read=db_notification.read,
            created_at=db_notification.created_at
        )
