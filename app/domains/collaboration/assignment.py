import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Tuple, Sequence

from app.core.exceptions import AssignmentError, ConfirmationRequired
from app.domains.projects.entities import Project, Question, ReviewState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    question_id: str
    editor_id: str


@dataclass
class AssignmentPreview:
    """План распределения, показываемый пользователю до применения"""
    assignments: List[Assignment]
    editor_ids: List[str]
    counts: Dict[str, int] = field(default_factory=dict)
    base_count: int = 0
    remainder: int = 0
    extra_editors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.assignments)

    def to_dict(self) -> dict:
        return {
            "assignments": [{"question_id": a.question_id, "editor_id": a.editor_id} for a in self.assignments],
            "editor_ids": self.editor_ids,
            "counts": self.counts,
            "base_count": self.base_count,
            "remainder": self.remainder,
            "extra_editors": self.extra_editors,
            "total": self.total,
        }


class AssignmentPlanner:
    """Детерминированное распределение вопросов между редакторами по кругу"""

    def validate_editors(self, editor_ids: Sequence[str]) -> List[str]:
        editors = list(editor_ids)
        if not editors:
            raise AssignmentError("At least one editor must be selected")
        if len(set(editors)) != len(editors):
            raise AssignmentError("Editor list contains duplicates")
        return editors

    def unassigned_questions(self, project: Project) -> List[Tuple[int, int, Question]]:
        return [
            (si, qi, q) for si, qi, q in project.iter_questions()
            if not q.assigned_to
        ]

    def distribute(
        self,
        questions: Sequence[Tuple[int, int, Question]],
        editor_ids: Sequence[str]
    ) -> List[Assignment]:
        """Вопрос i достаётся редактору editor_ids[i mod N]"""
        editors = self.validate_editors(editor_ids)
        ordered = sorted(questions, key=lambda item: (item[0], item[1]))
        return [
            Assignment(question_id=question.id, editor_id=editors[i % len(editors)])
            for i, (_, _, question) in enumerate(ordered)
        ]

    def preview(self, project: Project, editor_ids: Sequence[str]) -> AssignmentPreview:
        """Расчёт распределения без изменения проекта"""
        editors = self.validate_editors(editor_ids)
        assignments = self.distribute(self.unassigned_questions(project), editors)

        counts = {editor: 0 for editor in editors}
        for assignment in assignments:
            counts[assignment.editor_id] += 1

        base_count, remainder = divmod(len(assignments), len(editors))
        return AssignmentPreview(
            assignments=assignments,
            editor_ids=editors,
            counts=counts,
            base_count=base_count,
            remainder=remainder,
            extra_editors=editors[:remainder],
        )

    def apply(
        self,
        question: Question,
        editor_id: str,
        assigned_by: str,
        now: datetime
    ) -> Question:
        question.assigned_to = editor_id
        question.assigned_by = assigned_by
        question.assigned_at = now
        if question.review_state == ReviewState.UNASSIGNED:
            question.review_state = ReviewState.DRAFT
            question.status_updated_by = assigned_by
            question.status_updated_at = now
        return question

    def commit(
        self,
        project: Project,
        preview: AssignmentPreview,
        assigned_by: str,
        now: datetime,
        confirm_reassign: bool = False
    ) -> List[Assignment]:
        """Применение плана к проекту"""
        self.validate_editors(preview.editor_ids)

        targets = [(project.get_question(a.question_id), a) for a in preview.assignments]
        conflicts = [
            question.id for question, assignment in targets
            if question.assigned_to and question.assigned_to != assignment.editor_id
        ]
        if conflicts and not confirm_reassign:
            raise ConfirmationRequired(
                f"{len(conflicts)} question(s) are already assigned to someone else",
                question_ids=conflicts
            )

        for question, assignment in targets:
            self.apply(question, assignment.editor_id, assigned_by, now)

        logger.info(
            f"Assigned {len(targets)} questions in project {project.id} across {len(preview.editor_ids)} editors"
        )
        return [assignment for _, assignment in targets]
