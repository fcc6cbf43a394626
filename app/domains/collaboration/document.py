import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from app.core.exceptions import ConfirmationRequired, Forbidden, LockedError
from app.domains.collaboration.assignment import Assignment, AssignmentPlanner, AssignmentPreview
from app.domains.collaboration.locks import LockManager
from app.domains.collaboration.versions import VersionStore
from app.domains.collaboration.workflow import StatusWorkflow, round_half_up
from app.domains.identity.entities import Actor, Role, MANAGER_ROLES
from app.domains.notifications.entities import NotificationEvent, NotificationMessage, NotificationType
from app.domains.projects.entities import (
    Project, ProvenanceKind, Question, ReviewState, Stats
)

logger = logging.getLogger(__name__)


@dataclass
class EditSession:
    """Открытое редактирование вопроса"""
    question_id: str
    content: Optional[str]
    locked_by: str
    expires_at: datetime


class CollaborativeDocument:
    """Оркестратор изменений одного проекта.

    Все проверки (права, блокировка, граф состояний) выполняются до
    изменения вопроса. После каждого изменения пересчитывается статистика,
    а уведомления копятся в очереди до успешного сохранения проекта.
    """

    def __init__(
        self,
        project: Project,
        locks: Optional[LockManager] = None,
        versions: Optional[VersionStore] = None,
        workflow: Optional[StatusWorkflow] = None,
        planner: Optional[AssignmentPlanner] = None
    ):
        self.project = project
        self.locks = locks or LockManager()
        self.versions = versions or VersionStore()
        self.workflow = workflow or StatusWorkflow()
        self.planner = planner or AssignmentPlanner()
        self._events: List[NotificationEvent] = []

    def question(self, question_id: str) -> Question:
        return self.project.get_question(question_id)

    def _link(self, question_id: str) -> str:
        return f"/projects/{self.project.owner_id}/{self.project.id}?question={question_id}"

    def _queue(self, user_id: Optional[str], type: NotificationType, title: str, message: str, question_id: str) -> None:
        if not user_id:
            return
        self._events.append(NotificationEvent(
            user_id=user_id,
            message=NotificationMessage(type=type, title=title, message=message, link=self._link(question_id))
        ))

    def drain_events(self) -> List[NotificationEvent]:
        """Забрать накопленные уведомления"""
        events, self._events = self._events, []
        return events

    def ensure_manager(self, role: Role, action: str) -> None:
        if role not in MANAGER_ROLES:
            raise Forbidden(f"Only owners and admins can {action}")

    def _ensure_not_locked_by_other(self, question: Question, actor: Actor, now: datetime) -> None:
        result = self.locks.status(question, actor.uid, now)
        if not result.granted:
            raise LockedError(result.held_by, result.remaining_seconds)

    # Редактирование

    def start_edit(self, question_id: str, actor: Actor, role: Role, now: datetime) -> EditSession:
        """Начать редактирование: захват блокировки вопроса"""
        question = self.question(question_id)
        self.workflow.ensure_can_edit(question, actor, role)

        result = self.locks.try_acquire(question, actor.uid, now)
        if not result.granted:
            raise LockedError(result.held_by, result.remaining_seconds)

        return EditSession(
            question_id=question.id,
            content=question.response,
            locked_by=actor.uid,
            expires_at=now + timedelta(milliseconds=result.remaining_ms)
        )

    def cancel_edit(self, question_id: str, actor: Actor) -> bool:
        return self.locks.release(self.question(question_id), actor.uid)

    def save_edit(
        self,
        question_id: str,
        new_content: str,
        actor: Actor,
        role: Role,
        now: datetime,
        confirm_overwrite: bool = False
    ) -> Question:
        """Сохранение правки; блокировка снимается в любом случае"""
        question = self.question(question_id)
        self.workflow.ensure_can_edit(question, actor, role)

        changed = new_content != question.response
        if changed and question.review_state == ReviewState.APPROVED and not confirm_overwrite:
            raise ConfirmationRequired(
                "This answer is approved. Saving changes will reset it to draft.",
                question_ids=[question.id]
            )

        self.versions.snapshot_if_changed(question, new_content, actor.as_editor(), now=now)
        question.response = new_content
        question.status = ProvenanceKind.EDITED
        question.last_edited_at = now
        question.last_edited_by = actor.as_editor()
        # Изменённый согласованный ответ требует повторного согласования
        if changed and question.review_state == ReviewState.APPROVED:
            question.review_state = ReviewState.DRAFT
            question.status_updated_by = actor.uid
            question.status_updated_at = now
            question.approved_by = None
            question.approved_at = None
        LockManager.clear(question)

        self.recompute_stats()
        return question

    def regenerate(
        self,
        question_id: str,
        new_content: str,
        trust_score: Optional[int],
        actor: Actor,
        role: Role,
        now: datetime,
        confirm_overwrite: bool = False
    ) -> Question:
        """Замена ответа новым черновиком, сгенерированным ИИ"""
        question = self.question(question_id)
        self.workflow.ensure_can_edit(question, actor, role)
        self._ensure_not_locked_by_other(question, actor, now)

        if question.review_state == ReviewState.APPROVED and not confirm_overwrite:
            raise ConfirmationRequired(
                "This answer is approved. Regenerating will reset it to draft.",
                question_ids=[question.id]
            )

        self.versions.snapshot_if_changed(question, new_content, actor.as_editor(), now=now)
        question.response = new_content
        question.trust_score = trust_score
        question.status = ProvenanceKind.GENERATED
        question.last_edited_at = now
        question.last_edited_by = actor.as_editor()
        # Новый черновик всегда начинает согласование заново
        if question.review_state != ReviewState.UNASSIGNED:
            question.review_state = ReviewState.DRAFT
            question.status_updated_by = actor.uid
            question.status_updated_at = now
        question.approved_by = None
        question.approved_at = None
        LockManager.clear(question)

        self.recompute_stats()
        return question

    def restore_version(self, question_id: str, version_id: str, actor: Actor, role: Role, now: datetime) -> Question:
        """Восстановление ответа из истории"""
        question = self.question(question_id)
        self.workflow.ensure_can_edit(question, actor, role)
        self._ensure_not_locked_by_other(question, actor, now)

        self.versions.restore(question, version_id, editor=actor.as_editor(), now=now)
        question.last_edited_at = now
        question.last_edited_by = actor.as_editor()

        self.recompute_stats()
        return question

    # Согласование

    def change_status(self, question_id: str, target: ReviewState, actor: Actor, role: Role, now: datetime) -> Question:
        question = self.question(question_id)
        previous = question.review_state
        self.workflow.transition(question, target, actor, role, now)

        short_text = question.text[:60]
        if target == ReviewState.REVIEW:
            self._queue(
                question.assigned_by, NotificationType.SUBMITTED_FOR_REVIEW,
                "Answer submitted for review", f"{actor.display_name} submitted \"{short_text}\" for review",
                question.id
            )
        elif target == ReviewState.APPROVED:
            self._queue(
                question.assigned_to, NotificationType.QUESTION_APPROVED,
                "Answer approved", f"{actor.display_name} approved your answer to \"{short_text}\"",
                question.id
            )
        elif previous == ReviewState.REVIEW and target == ReviewState.DRAFT:
            self._queue(
                question.assigned_to, NotificationType.CHANGES_REQUESTED,
                "Changes requested", f"{actor.display_name} requested changes to \"{short_text}\"",
                question.id
            )

        self.recompute_stats()
        return question

    # Назначения

    def assign_bulk(self, editor_ids: Sequence[str], actor: Actor, role: Role) -> AssignmentPreview:
        """Предпросмотр распределения; проект не изменяется"""
        self.ensure_manager(role, "assign questions")
        return self.planner.preview(self.project, editor_ids)

    def commit_assign(
        self,
        preview: AssignmentPreview,
        actor: Actor,
        role: Role,
        now: datetime,
        confirm_reassign: bool = False
    ) -> List[Assignment]:
        self.ensure_manager(role, "assign questions")
        assignments = self.planner.commit(self.project, preview, actor.uid, now, confirm_reassign)

        for assignment in assignments:
            question = self.question(assignment.question_id)
            self._queue(
                assignment.editor_id, NotificationType.ASSIGNMENT,
                "New question assigned",
                f"{actor.display_name} assigned you \"{question.text[:60]}\" in {self.project.name}",
                question.id
            )

        self.recompute_stats()
        return assignments

    def assign_question(
        self,
        question_id: str,
        editor_id: str,
        actor: Actor,
        role: Role,
        now: datetime,
        confirm_reassign: bool = False
    ) -> Question:
        """Назначение одного вопроса редактору"""
        self.ensure_manager(role, "assign questions")
        question = self.question(question_id)

        previous = question.assigned_to
        if previous and previous != editor_id and not confirm_reassign:
            raise ConfirmationRequired(
                f"Question is already assigned to {previous}",
                question_ids=[question.id]
            )

        self.planner.apply(question, editor_id, actor.uid, now)
        if previous and previous != editor_id:
            self._queue(
                previous, NotificationType.UNASSIGNMENT,
                "Question reassigned", f"\"{question.text[:60]}\" was reassigned",
                question.id
            )
        self._queue(
            editor_id, NotificationType.ASSIGNMENT,
            "New question assigned",
            f"{actor.display_name} assigned you \"{question.text[:60]}\" in {self.project.name}",
            question.id
        )

        self.recompute_stats()
        return question

    def unassign_question(self, question_id: str, actor: Actor, role: Role, now: datetime) -> Question:
        self.ensure_manager(role, "unassign questions")
        question = self.question(question_id)

        previous = question.assigned_to
        question.assigned_to = None
        question.assigned_by = None
        question.assigned_at = None
        question.review_state = ReviewState.UNASSIGNED
        question.approved_by = None
        question.approved_at = None
        question.status_updated_by = actor.uid
        question.status_updated_at = now

        self._queue(
            previous, NotificationType.UNASSIGNMENT,
            "Question unassigned", f"\"{question.text[:60]}\" is no longer assigned to you",
            question.id
        )

        self.recompute_stats()
        return question

    # Статистика

    def unanswered_questions(self) -> List[Question]:
        return [q for _, _, q in self.project.iter_questions() if not q.is_answered]

    def recompute_stats(self) -> Stats:
        """Пересчёт агрегированной статистики проекта"""
        stats = Stats()
        for _, _, question in self.project.iter_questions():
            stats.total_questions += 1
            if question.is_answered:
                stats.answered += 1
            if question.review_state == ReviewState.REVIEW:
                stats.in_review += 1
            elif question.review_state == ReviewState.APPROVED:
                stats.approved += 1

        if stats.total_questions:
            stats.progress = round_half_up(stats.answered / stats.total_questions * 100)

        self.project.stats = stats
        return stats
