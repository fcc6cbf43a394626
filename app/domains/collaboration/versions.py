import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List

from app.domains.projects.entities import (
    ChangeType, EditorRef, ProvenanceKind, Question, ReviewState, Version
)

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    content: str
    prior_versions: List[Version]


class VersionStore:
    """Ведение истории ответов: только добавление, без перезаписи"""

    def _should_append(self, question: Question, content: Optional[str], new_content: Optional[str]) -> bool:
        if not content or content == new_content:
            return False
        latest = question.latest_version
        return latest is None or latest.content != content

    def _flush_pending(self, question: Question, new_content: Optional[str]) -> None:
        # Содержимое, вытесненное восстановлением, попадает в историю при следующей правке
        pending = question.pending_version
        question.pending_version = None
        if pending and self._should_append(question, pending.content, new_content):
            question.versions.append(pending)

    def _change_type_for(self, question: Question) -> ChangeType:
        if question.review_state == ReviewState.APPROVED:
            return ChangeType.APPROVED
        return ChangeType(question.status.value)

    def snapshot_if_changed(
        self,
        question: Question,
        new_content: Optional[str],
        editor: Optional[EditorRef],
        change_type: Optional[ChangeType] = None,
        now: Optional[datetime] = None
    ) -> List[Version]:
        """Сохранение предыдущего ответа перед его заменой"""
        self._flush_pending(question, new_content)

        previous = question.response
        if self._should_append(question, previous, new_content):
            version = Version.create_version(
                content=previous,
                editor=editor,
                change_type=change_type or self._change_type_for(question),
                trust_score=question.trust_score,
                now=now
            )
            question.versions.append(version)
            logger.debug(f"Snapshot {version.id} appended to question {question.id}")

        return question.versions

    def restore(
        self,
        question: Question,
        version_id: str,
        editor: Optional[EditorRef] = None,
        now: Optional[datetime] = None
    ) -> RestoreResult:
        """Восстановление ответа из версии без изменения истории"""
        version = question.find_version(version_id)
        # Повторное восстановление до правки не должно терять предыдущий отложенный снимок
        self._flush_pending(question, version.content)

        if question.response and question.response != version.content:
            question.pending_version = Version.create_version(
                content=question.response,
                editor=editor,
                change_type=self._change_type_for(question),
                trust_score=question.trust_score,
                now=now
            )

        question.response = version.content
        question.trust_score = version.trust_score
        question.status = ProvenanceKind.RESTORED

        return RestoreResult(content=version.content, prior_versions=list(question.versions))
