import logging
from dataclasses import dataclass
from typing import List, Optional

from app.core.exceptions import StaleDocumentConflict, WorkflowError
from app.domains.projects.entities import Project

logger = logging.getLogger(__name__)


@dataclass
class LocalDraft:
    """Несохранённая локальная правка вопроса"""
    question_id: str
    content: str
    unsaved: bool = False
    last_error: Optional[str] = None


class LocalReplica:
    """Клиентская копия проекта: серверное состояние и локальный черновик.

    Пока открыт черновик, удалённые обновления откладываются, чтобы не
    потерять набираемый текст. После сохранения или отмены черновика
    применяется самое свежее отложенное обновление целиком.
    """

    def __init__(self, project: Project):
        self.server = project
        self.local_draft: Optional[LocalDraft] = None
        self.deferred: Optional[Project] = None
        self.notices: List[StaleDocumentConflict] = []

    @property
    def is_editing(self) -> bool:
        return self.local_draft is not None

    def open_draft(self, question_id: str, content: Optional[str] = None) -> LocalDraft:
        if content is None:
            content = self.server.get_question(question_id).response or ""
        self.local_draft = LocalDraft(question_id=question_id, content=content)
        return self.local_draft

    def update_draft(self, content: str) -> None:
        if self.local_draft is None:
            raise WorkflowError("No draft is open")
        self.local_draft.content = content

    def receive_remote(self, project: Project) -> bool:
        """Приём удалённого обновления; False, если оно отложено"""
        if project.revision < self.server.revision:
            return False

        if self.local_draft is None:
            self.server = project
            return True

        if self.deferred is None or project.revision >= self.deferred.revision:
            self.deferred = project
        notice = StaleDocumentConflict(self.local_draft.question_id, project.revision)
        self.notices.append(notice)
        logger.info(notice.message)
        return False

    def commit_succeeded(self, saved: Project) -> Project:
        """Черновик сохранён на сервере"""
        self.local_draft = None
        self._accept(saved)
        return self.server

    def commit_failed(self, error: Exception) -> LocalDraft:
        """Сохранение не удалось: черновик остаётся и помечается"""
        if self.local_draft is None:
            raise WorkflowError("No draft is open")
        self.local_draft.unsaved = True
        self.local_draft.last_error = str(error)
        logger.warning(f"Draft for question {self.local_draft.question_id} kept after failed save: {error}")
        return self.local_draft

    def cancel_draft(self) -> Project:
        self.local_draft = None
        self._accept(None)
        return self.server

    def _accept(self, saved: Optional[Project]) -> None:
        candidates = [p for p in (saved, self.deferred) if p is not None]
        self.deferred = None
        if not candidates:
            return
        latest = max(candidates, key=lambda p: p.revision)
        if latest.revision >= self.server.revision:
            self.server = latest

    def current_content(self, question_id: str) -> Optional[str]:
        if self.local_draft and self.local_draft.question_id == question_id:
            return self.local_draft.content
        return self.server.get_question(question_id).response
