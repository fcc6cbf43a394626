import logging
from datetime import datetime
from typing import Dict, FrozenSet, Any

from app.core.exceptions import Forbidden, InvalidTransition
from app.domains.identity.entities import Actor, Role, MANAGER_ROLES
from app.domains.projects.entities import Project, Question, ReviewState

logger = logging.getLogger(__name__)


# Допустимые переходы между состояниями согласования
TRANSITIONS: Dict[ReviewState, FrozenSet[ReviewState]] = {
    ReviewState.UNASSIGNED: frozenset({ReviewState.DRAFT}),
    ReviewState.DRAFT: frozenset({ReviewState.REVIEW}),
    ReviewState.REVIEW: frozenset({ReviewState.DRAFT, ReviewState.APPROVED}),
    ReviewState.APPROVED: frozenset({ReviewState.DRAFT}),
}


class StatusWorkflow:
    """Машина состояний согласования ответа на вопрос"""

    def can_transition(self, current: ReviewState, target: ReviewState) -> bool:
        return target in TRANSITIONS.get(current, frozenset())

    def is_assigned_to(self, question: Question, actor: Actor) -> bool:
        return question.assigned_to is not None and question.assigned_to in (actor.uid, actor.email)

    def check_role(self, question: Question, actor: Actor, role: Role) -> None:
        """Проверка права роли на переход"""
        if role in MANAGER_ROLES:
            return
        if role == Role.VIEWER:
            raise Forbidden("Viewers cannot change question status")
        if not self.is_assigned_to(question, actor):
            raise Forbidden("Editors can only change status of questions assigned to them")
        if question.review_state == ReviewState.APPROVED:
            raise Forbidden("Only owners and admins can reopen an approved answer")

    def transition(
        self,
        question: Question,
        target: ReviewState,
        actor: Actor,
        role: Role,
        now: datetime
    ) -> Question:
        """Смена состояния вопроса с проверкой графа и прав"""
        current = question.review_state
        if not self.can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

        self.check_role(question, actor, role)

        question.review_state = target
        question.status_updated_by = actor.uid
        question.status_updated_at = now

        if target == ReviewState.APPROVED:
            question.approved_by = actor.uid
            question.approved_at = now
        elif target == ReviewState.DRAFT:
            question.approved_by = None
            question.approved_at = None

        logger.info(f"Question {question.id}: {current.value} -> {target.value} by {actor.uid}")
        return question

    def can_edit(self, question: Question, actor: Actor, role: Role) -> bool:
        """Может ли участник редактировать ответ"""
        if role in MANAGER_ROLES:
            return True
        if role == Role.VIEWER:
            return False
        return self.is_assigned_to(question, actor) and question.review_state != ReviewState.APPROVED

    def ensure_can_edit(self, question: Question, actor: Actor, role: Role) -> None:
        if not self.can_edit(question, actor, role):
            raise Forbidden(f"{actor.uid} cannot edit question {question.id}")

    def progress_breakdown(self, project: Project) -> Dict[str, Any]:
        """Распределение вопросов по состояниям согласования"""
        counts = {state.value: 0 for state in ReviewState}
        total = 0
        for _, _, question in project.iter_questions():
            counts[question.review_state.value] += 1
            total += 1

        percentages = {
            state: (round_half_up(count / total * 100) if total else 0)
            for state, count in counts.items()
        }
        return {"total": total, "counts": counts, "percentages": percentages}


def round_half_up(value: float) -> int:
    return int(value + 0.5)
