import logging
from datetime import datetime
from typing import List, Optional, Tuple, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.collaboration.assignment import Assignment, AssignmentPreview
from app.domains.collaboration.document import CollaborativeDocument, EditSession
from app.domains.collaboration.feed import ChangeFeed, change_feed
from app.domains.collaboration.locks import LockManager, LockResult
from app.domains.collaboration.presence import PresenceEntry, PresenceTracker, presence_tracker
from app.domains.identity.entities import Actor, Role
from app.domains.notifications.services import NotificationService
from app.domains.projects.entities import Project, Question, ReviewState, utcnow
from app.domains.projects.generation import AnswerGenerator
from app.domains.projects.services import ProjectService

logger = logging.getLogger(__name__)


class CollaborationService:
    """Сервис совместной работы над вопросами проекта.

    Каждое изменяющее действие: загрузка проекта, изменение через
    CollaborativeDocument, запись документа целиком с проверкой ревизии,
    рассылка подписчикам и отправка накопленных уведомлений.
    """

    def __init__(
        self,
        session: AsyncSession,
        feed: Optional[ChangeFeed] = None,
        presence: Optional[PresenceTracker] = None,
        generator: Optional[AnswerGenerator] = None,
        locks: Optional[LockManager] = None
    ):
        self.session = session
        self.project_service = ProjectService(session)
        self.project_repository = self.project_service.project_repository
        self.notification_service = NotificationService(session)
        self.feed = feed or change_feed
        self.presence = presence or presence_tracker
        self.generator = generator or AnswerGenerator()
        self.locks = locks or LockManager()

    async def _open(self, owner_id: str, project_id: str, actor: Actor) -> Tuple[CollaborativeDocument, Role]:
        project = await self.project_service.load_project(owner_id, project_id, actor)
        return CollaborativeDocument(project, locks=self.locks), actor.role_in(project)

    async def _commit(self, document: CollaborativeDocument) -> Project:
        """Запись документа, рассылка изменений и уведомлений"""
        project = document.project
        document.recompute_stats()

        project.revision = await self.project_repository.save(
            project.owner_id,
            project.id,
            {"sections": project.sections_to_list(), "stats": project.stats.to_dict()},
            expected_revision=project.revision
        )
        project.updated_at = utcnow()

        await self.feed.publish(project)

        events = document.drain_events()
        if events:
            delivered = await self.notification_service.dispatch(events)
            logger.info(f"Delivered {delivered}/{len(events)} notifications for project {project.id}")
        return project

    # Блокировки и правки

    async def start_edit(self, owner_id: str, project_id: str, question_id: str, actor: Actor) -> EditSession:
        """Захват блокировки вопроса для редактирования"""
        document, role = await self._open(owner_id, project_id, actor)
        session = document.start_edit(question_id, actor, role, utcnow())
        await self._commit(document)
        return session

    async def cancel_edit(self, owner_id: str, project_id: str, question_id: str, actor: Actor) -> bool:
        document, _ = await self._open(owner_id, project_id, actor)
        released = document.cancel_edit(question_id, actor)
        if released:
            await self._commit(document)
        return released

    async def lock_status(self, owner_id: str, project_id: str, question_id: str, actor: Actor) -> LockResult:
        document, _ = await self._open(owner_id, project_id, actor)
        return self.locks.status(document.question(question_id), actor.uid, utcnow())

    async def save_edit(
        self,
        owner_id: str,
        project_id: str,
        question_id: str,
        content: str,
        actor: Actor,
        confirm_overwrite: bool = False
    ) -> Tuple[Question, Project]:
        document, role = await self._open(owner_id, project_id, actor)
        question = document.save_edit(question_id, content, actor, role, utcnow(), confirm_overwrite)
        project = await self._commit(document)
        return question, project

    async def regenerate(
        self,
        owner_id: str,
        project_id: str,
        question_id: str,
        actor: Actor,
        content: Optional[str] = None,
        trust_score: Optional[int] = None,
        confirm_overwrite: bool = False
    ) -> Tuple[Question, Project]:
        """Перегенерация ответа; текст запрашивается у сервиса, если не передан"""
        document, role = await self._open(owner_id, project_id, actor)
        question = document.question(question_id)

        if content is None:
            answer = await self.generator.generate(question.text)
            content, trust_score = answer.response, answer.trust_score

        question = document.regenerate(
            question_id, content, trust_score, actor, role, utcnow(), confirm_overwrite
        )
        project = await self._commit(document)
        return question, project

    async def restore_version(
        self,
        owner_id: str,
        project_id: str,
        question_id: str,
        version_id: str,
        actor: Actor
    ) -> Tuple[Question, Project]:
        document, role = await self._open(owner_id, project_id, actor)
        question = document.restore_version(question_id, version_id, actor, role, utcnow())
        project = await self._commit(document)
        return question, project

    async def generate_missing(self, owner_id: str, project_id: str, actor: Actor) -> Tuple[Project, int, int, int]:
        """Генерация ответов для всех вопросов без ответа.

        Вопросы, которые сейчас редактирует другой участник, и уже
        согласованные вопросы пропускаются и попадают в счётчик skipped.
        """
        document, role = await self._open(owner_id, project_id, actor)
        document.ensure_manager(role, "generate answers for the whole project")

        generated = fallback = skipped = 0
        for question in document.unanswered_questions():
            now = utcnow()
            if question.review_state == ReviewState.APPROVED or not self.locks.status(question, actor.uid, now).granted:
                skipped += 1
                continue
            answer = await self.generator.generate(question.text)
            document.regenerate(question.id, answer.response, answer.trust_score, actor, role, now)
            generated += 1
            if answer.fallback:
                fallback += 1

        project = await self._commit(document) if generated else document.project
        logger.info(f"Generated {generated} answers ({fallback} fallback, {skipped} skipped) for project {project_id}")
        return project, generated, fallback, skipped

    # Согласование

    async def change_status(
        self,
        owner_id: str,
        project_id: str,
        question_id: str,
        target: ReviewState,
        actor: Actor
    ) -> Tuple[Question, Project]:
        document, role = await self._open(owner_id, project_id, actor)
        question = document.change_status(question_id, target, actor, role, utcnow())
        project = await self._commit(document)
        return question, project

    async def workflow_progress(self, owner_id: str, project_id: str, actor: Actor) -> Dict[str, Any]:
        document, _ = await self._open(owner_id, project_id, actor)
        return document.workflow.progress_breakdown(document.project)

    # Назначения

    async def preview_assignment(self, owner_id: str, project_id: str, editor_ids: List[str], actor: Actor) -> AssignmentPreview:
        document, role = await self._open(owner_id, project_id, actor)
        return document.assign_bulk(editor_ids, actor, role)

    async def commit_assignment(
        self,
        owner_id: str,
        project_id: str,
        preview: AssignmentPreview,
        actor: Actor,
        confirm_reassign: bool = False
    ) -> Tuple[List[Assignment], Project]:
        document, role = await self._open(owner_id, project_id, actor)
        assignments = document.commit_assign(preview, actor, role, utcnow(), confirm_reassign)
        project = await self._commit(document)
        return assignments, project

    async def assign_question(
        self,
        owner_id: str,
        project_id: str,
        question_id: str,
        editor_id: str,
        actor: Actor,
        confirm_reassign: bool = False
    ) -> Tuple[Question, Project]:
        document, role = await self._open(owner_id, project_id, actor)
        question = document.assign_question(question_id, editor_id, actor, role, utcnow(), confirm_reassign)
        project = await self._commit(document)
        return question, project

    async def unassign_question(
        self,
        owner_id: str,
        project_id: str,
        question_id: str,
        actor: Actor
    ) -> Tuple[Question, Project]:
        document, role = await self._open(owner_id, project_id, actor)
        question = document.unassign_question(question_id, actor, role, utcnow())
        project = await self._commit(document)
        return question, project

    # Присутствие

    async def heartbeat(
        self,
        owner_id: str,
        project_id: str,
        actor: Actor,
        info: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> PresenceEntry:
        await self.project_service.load_project(owner_id, project_id, actor)
        info = dict(info or {})
        info.setdefault("name", actor.display_name)
        info.setdefault("email", actor.email)
        return self.presence.heartbeat(project_id, actor.uid, info, now or utcnow())

    async def set_typing(
        self,
        owner_id: str,
        project_id: str,
        actor: Actor,
        is_typing: bool,
        question_id: Optional[str] = None
    ) -> PresenceEntry:
        await self.project_service.load_project(owner_id, project_id, actor)
        return self.presence.set_typing(project_id, actor.uid, is_typing, question_id, utcnow())

    async def active_users(self, owner_id: str, project_id: str, actor: Actor) -> List[Dict[str, Any]]:
        await self.project_service.load_project(owner_id, project_id, actor)
        return self.presence.others(project_id, actor.uid, utcnow())
