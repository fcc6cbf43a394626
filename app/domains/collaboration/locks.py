import math
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.domains.projects.entities import Question

logger = logging.getLogger(__name__)


@dataclass
class LockResult:
    """Результат попытки захвата блокировки"""
    granted: bool
    held_by: Optional[str] = None
    remaining_ms: int = 0

    @property
    def remaining_seconds(self) -> int:
        return math.ceil(self.remaining_ms / 1000)

    def format_remaining(self) -> str:
        minutes, seconds = divmod(self.remaining_seconds, 60)
        return f"{minutes}:{seconds:02d}"


class LockManager:
    """Рекомендательная блокировка вопроса с ограниченным временем жизни.

    Блокировка хранится в полях вопроса (locked_by, locked_at) и считается
    живой, пока с момента захвата прошло меньше TTL. Истёкшая блокировка
    молча перехватывается следующим редактором.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl = timedelta(
            seconds=settings.lock_ttl_seconds if ttl_seconds is None else ttl_seconds
        )

    def is_live(self, question: Question, now: datetime) -> bool:
        """Блокировка истекает, только когда её возраст превысил TTL"""
        if not question.locked_by or not question.locked_at:
            return False
        return now - question.locked_at <= self.ttl

    def status(self, question: Question, viewer_id: str, now: datetime) -> LockResult:
        """Проверка блокировки без её изменения"""
        if not self.is_live(question, now) or question.locked_by == viewer_id:
            return LockResult(granted=True)

        remaining = self.ttl - (now - question.locked_at)
        return LockResult(
            granted=False,
            held_by=question.locked_by,
            remaining_ms=int(remaining.total_seconds() * 1000)
        )

    def try_acquire(self, question: Question, editor_id: str, now: datetime) -> LockResult:
        """Захват блокировки вопроса"""
        result = self.status(question, editor_id, now)
        if not result.granted:
            logger.info(
                f"Lock on question {question.id} denied for {editor_id}: held by {result.held_by}"
            )
            return result

        if question.locked_by and question.locked_by != editor_id:
            logger.info(f"Reclaiming expired lock on question {question.id} from {question.locked_by}")

        question.locked_by = editor_id
        question.locked_at = now
        return LockResult(granted=True, held_by=editor_id, remaining_ms=int(self.ttl.total_seconds() * 1000))

    def release(self, question: Question, editor_id: str) -> bool:
        """Снятие блокировки; действует только для владельца"""
        if question.locked_by != editor_id:
            return False
        self.clear(question)
        return True

    @staticmethod
    def clear(question: Question) -> None:
        question.locked_by = None
        question.locked_at = None
