import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Any

from app.core.config import settings

logger = logging.getLogger(__name__)

PRESENCE_COLORS = [
    "#EF4444", "#F97316", "#EAB308", "#22C55E",
    "#06B6D4", "#3B82F6", "#8B5CF6", "#EC4899",
]


def presence_color(user_id: str) -> str:
    """Постоянный цвет участника по его идентификатору"""
    hash_value = 0
    for char in user_id:
        hash_value = (ord(char) + ((hash_value << 5) - hash_value)) & 0xFFFFFFFF
    # Приведение к знаковому 32-битному значению
    if hash_value >= 2 ** 31:
        hash_value -= 2 ** 32
    return PRESENCE_COLORS[abs(hash_value) % len(PRESENCE_COLORS)]


class PresenceEntry:
    """Запись о присутствии участника в документе"""

    def __init__(
        self,
        user_id: str,
        name: str,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
        last_seen: Optional[datetime] = None
    ):
        self.user_id = user_id
        self.name = name
        self.email = email
        self.avatar = avatar
        self.color = presence_color(user_id)
        self.is_typing = False
        self.typing_question: Optional[str] = None
        self.last_seen = last_seen

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "color": self.color,
            "is_typing": self.is_typing,
            "typing_question": self.typing_question,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }

    def __repr__(self) -> str:
        return f"PresenceEntry(user={self.user_id}, typing={self.is_typing})"


PresenceCallback = Callable[[Dict[str, PresenceEntry]], None]


class PresenceTracker:
    """Наблюдаемый список активных участников документа.

    Таймера нет: записи старше TTL удаляются при чтении вместе с их
    признаком набора текста, пустые документы не хранятся.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl = timedelta(
            seconds=settings.presence_ttl_seconds if ttl_seconds is None else ttl_seconds
        )
        # {document_id: {user_id: PresenceEntry}}
        self._entries: Dict[str, Dict[str, PresenceEntry]] = {}
        self._subscribers: Dict[str, List[PresenceCallback]] = {}

    def heartbeat(self, document_id: str, user_id: str, info: Dict[str, Any], now: datetime) -> PresenceEntry:
        """Обновление отметки присутствия"""
        entries = self._entries.setdefault(document_id, {})
        entry = entries.get(user_id)
        if entry is None:
            entry = PresenceEntry(user_id=user_id, name=info.get("name") or "Anonymous")
            entries[user_id] = entry

        entry.name = info.get("name") or entry.name
        entry.email = info.get("email", entry.email)
        entry.avatar = info.get("avatar", entry.avatar)
        entry.last_seen = now

        self._notify(document_id, now)
        return entry

    def set_typing(
        self,
        document_id: str,
        user_id: str,
        is_typing: bool,
        question_id: Optional[str],
        now: datetime
    ) -> PresenceEntry:
        """Обновление индикатора набора текста"""
        entry = self._entries.get(document_id, {}).get(user_id)
        if entry is None:
            entry = self.heartbeat(document_id, user_id, {}, now)

        entry.is_typing = is_typing
        entry.typing_question = question_id if is_typing else None
        entry.last_seen = now

        self._notify(document_id, now)
        return entry

    def clear(self, document_id: str, user_id: str, now: Optional[datetime] = None) -> None:
        entries = self._entries.get(document_id)
        if not entries or user_id not in entries:
            return
        del entries[user_id]
        if not entries:
            del self._entries[document_id]
        if now is not None:
            self._notify(document_id, now)

    def active(self, document_id: str, now: datetime) -> Dict[str, PresenceEntry]:
        """Участники, которых видели меньше TTL назад; устаревшие записи удаляются"""
        entries = self._entries.get(document_id)
        if not entries:
            return {}

        for user_id, entry in list(entries.items()):
            if entry.last_seen is None or now - entry.last_seen >= self.ttl:
                del entries[user_id]
        if not entries:
            del self._entries[document_id]
        return dict(entries)

    def others(self, document_id: str, current_user_id: str, now: datetime) -> List[Dict[str, Any]]:
        return [
            entry.to_dict()
            for user_id, entry in self.active(document_id, now).items()
            if user_id != current_user_id
        ]

    def subscribe(self, document_id: str, callback: PresenceCallback) -> Callable[[], None]:
        """Подписка на изменения; возвращает функцию отписки"""
        callbacks = self._subscribers.setdefault(document_id, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks and self._subscribers.get(document_id) is callbacks:
                del self._subscribers[document_id]

        return unsubscribe

    def subscriber_count(self, document_id: str) -> int:
        return len(self._subscribers.get(document_id, []))

    def _notify(self, document_id: str, now: datetime) -> None:
        snapshot = self.active(document_id, now)
        for callback in list(self._subscribers.get(document_id, [])):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Presence subscriber failed for document {document_id}: {e}")


presence_tracker = PresenceTracker()
