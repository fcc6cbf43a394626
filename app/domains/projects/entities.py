import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Iterator, Tuple

from app.core.exceptions import NotFoundError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    # sqlite отдаёт naive значения
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ProvenanceKind(str, Enum):
    """Происхождение текущего текста ответа"""
    GENERATED = "generated"
    EDITED = "edited"
    RESTORED = "restored"
    DRAFT = "draft"


class ReviewState(str, Enum):
    """Состояние вопроса в процессе согласования"""
    UNASSIGNED = "unassigned"
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"


class ChangeType(str, Enum):
    GENERATED = "generated"
    EDITED = "edited"
    APPROVED = "approved"
    RESTORED = "restored"
    DRAFT = "draft"


class Visibility(str, Enum):
    PERSONAL = "personal"
    TEAM = "team"


# Стадия для отображения в интерфейсе
DISPLAY_STAGES = {
    ReviewState.UNASSIGNED: "draft",
    ReviewState.DRAFT: "draft",
    ReviewState.REVIEW: "in_review",
    ReviewState.APPROVED: "approved",
}


@dataclass(frozen=True)
class EditorRef:
    """Кто внёс изменение"""
    uid: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"uid": self.uid, "name": self.name}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["EditorRef"]:
        if not data:
            return None
        return cls(uid=data.get("uid", ""), name=data.get("name", ""))


@dataclass(frozen=True)
class Version:
    """Неизменяемый снимок ответа на вопрос"""
    id: str
    content: str
    edited_at: datetime
    edited_by: Optional[EditorRef]
    change_type: ChangeType
    trust_score: Optional[int] = None

    @classmethod
    def create_version(
        cls,
        content: str,
        editor: Optional[EditorRef],
        change_type: ChangeType,
        trust_score: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> "Version":
        return cls(
            id=f"v_{uuid.uuid4().hex[:12]}",
            content=content,
            edited_at=now or utcnow(),
            edited_by=editor,
            change_type=change_type,
            trust_score=trust_score
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "edited_at": _dump_dt(self.edited_at),
            "edited_by": self.edited_by.to_dict() if self.edited_by else None,
            "change_type": self.change_type.value,
            "trust_score": self.trust_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Version":
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            edited_at=_load_dt(data.get("edited_at")),
            edited_by=EditorRef.from_dict(data.get("edited_by")),
            change_type=ChangeType(data.get("change_type", ChangeType.DRAFT.value)),
            trust_score=data.get("trust_score"),
        )


class Question:
    """Вопрос RFP с ответом, историей и служебными полями процесса"""

    def __init__(
        self,
        id: str,
        text: str,
        response: Optional[str] = None,
        status: ProvenanceKind = ProvenanceKind.DRAFT,
        review_state: ReviewState = ReviewState.UNASSIGNED,
        trust_score: Optional[int] = None,
        assigned_to: Optional[str] = None,
        assigned_by: Optional[str] = None,
        assigned_at: Optional[datetime] = None,
        locked_by: Optional[str] = None,
        locked_at: Optional[datetime] = None,
        approved_by: Optional[str] = None,
        approved_at: Optional[datetime] = None,
        status_updated_by: Optional[str] = None,
        status_updated_at: Optional[datetime] = None,
        versions: Optional[List[Version]] = None,
        pending_version: Optional[Version] = None,
        last_edited_at: Optional[datetime] = None,
        last_edited_by: Optional[EditorRef] = None
    ):
        self.id = id
        self.text = text
        self.response = response
        self.status = status
        self.review_state = review_state
        self.trust_score = trust_score
        self.assigned_to = assigned_to
        self.assigned_by = assigned_by
        self.assigned_at = assigned_at
        self.locked_by = locked_by
        self.locked_at = locked_at
        self.approved_by = approved_by
        self.approved_at = approved_at
        self.status_updated_by = status_updated_by
        self.status_updated_at = status_updated_at
        self.versions = versions or []
        self.pending_version = pending_version
        self.last_edited_at = last_edited_at
        self.last_edited_by = last_edited_by

    @classmethod
    def create_question(cls, text: str, response: Optional[str] = None) -> "Question":
        return cls(id=f"q_{uuid.uuid4().hex[:12]}", text=text, response=response)

    @property
    def is_answered(self) -> bool:
        return bool(self.response)

    @property
    def display_stage(self) -> str:
        return DISPLAY_STAGES[self.review_state]

    @property
    def latest_version(self) -> Optional[Version]:
        return self.versions[-1] if self.versions else None

    def find_version(self, version_id: str) -> Version:
        for version in self.versions:
            if version.id == version_id:
                return version
        raise NotFoundError(f"Version {version_id} not found")

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация вопроса для хранения в документе проекта"""
        return {
            "id": self.id,
            "text": self.text,
            "response": self.response,
            "status": self.status.value,
            "review_state": self.review_state.value,
            "trust_score": self.trust_score,
            "assigned_to": self.assigned_to,
            "assigned_by": self.assigned_by,
            "assigned_at": _dump_dt(self.assigned_at),
            "locked_by": self.locked_by,
            "locked_at": _dump_dt(self.locked_at),
            "approved_by": self.approved_by,
            "approved_at": _dump_dt(self.approved_at),
            "status_updated_by": self.status_updated_by,
            "status_updated_at": _dump_dt(self.status_updated_at),
            "versions": [v.to_dict() for v in self.versions],
            "pending_version": self.pending_version.to_dict() if self.pending_version else None,
            "last_edited_at": _dump_dt(self.last_edited_at),
            "last_edited_by": self.last_edited_by.to_dict() if self.last_edited_by else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        pending = data.get("pending_version")
        return cls(
            id=data["id"],
            text=data.get("text", ""),
            response=data.get("response"),
            status=ProvenanceKind(data.get("status") or ProvenanceKind.DRAFT.value),
            review_state=ReviewState(data.get("review_state") or ReviewState.UNASSIGNED.value),
            trust_score=data.get("trust_score"),
            assigned_to=data.get("assigned_to"),
            assigned_by=data.get("assigned_by"),
            assigned_at=_load_dt(data.get("assigned_at")),
            locked_by=data.get("locked_by"),
            locked_at=_load_dt(data.get("locked_at")),
            approved_by=data.get("approved_by"),
            approved_at=_load_dt(data.get("approved_at")),
            status_updated_by=data.get("status_updated_by"),
            status_updated_at=_load_dt(data.get("status_updated_at")),
            versions=[Version.from_dict(v) for v in data.get("versions", [])],
            pending_version=Version.from_dict(pending) if pending else None,
            last_edited_at=_load_dt(data.get("last_edited_at")),
            last_edited_by=EditorRef.from_dict(data.get("last_edited_by")),
        )

    def __repr__(self) -> str:
        return f"Question(id={self.id}, review_state={self.review_state.value}, status={self.status.value})"


class Section:
    """Именованная группа вопросов"""

    def __init__(self, id: str, name: str, questions: Optional[List[Question]] = None):
        self.id = id
        self.name = name
        self.questions = questions or []

    @classmethod
    def create_section(cls, name: str, questions: Optional[List[Question]] = None) -> "Section":
        return cls(id=f"s_{uuid.uuid4().hex[:12]}", name=name, questions=questions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "questions": [q.to_dict() for q in self.questions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            questions=[Question.from_dict(q) for q in data.get("questions", [])],
        )

    def __repr__(self) -> str:
        return f"Section(id={self.id}, name={self.name}, questions={len(self.questions)})"


@dataclass
class Stats:
    """Агрегированная статистика проекта"""
    total_questions: int = 0
    answered: int = 0
    in_review: int = 0
    approved: int = 0
    progress: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_questions": self.total_questions,
            "answered": self.answered,
            "in_review": self.in_review,
            "approved": self.approved,
            "progress": self.progress,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Stats":
        data = data or {}
        return cls(
            total_questions=data.get("total_questions", 0),
            answered=data.get("answered", 0),
            in_review=data.get("in_review", 0),
            approved=data.get("approved", 0),
            progress=data.get("progress", 0),
        )


class Project:
    """Проект RFP: упорядоченные разделы с вопросами и статистика"""

    def __init__(
        self,
        id: str,
        owner_id: str,
        name: str,
        visibility: Visibility = Visibility.PERSONAL,
        team_id: Optional[str] = None,
        sections: Optional[List[Section]] = None,
        stats: Optional[Stats] = None,
        revision: int = 0,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.id = id
        self.owner_id = owner_id
        self.name = name
        self.visibility = visibility
        self.team_id = team_id
        self.sections = sections or []
        self.stats = stats or Stats()
        self.revision = revision
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    @classmethod
    def create_project(
        cls,
        owner_id: str,
        name: str,
        sections: List[Section],
        visibility: Visibility = Visibility.PERSONAL,
        team_id: Optional[str] = None
    ) -> "Project":
        """Создание нового проекта"""
        return cls(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            name=name,
            visibility=visibility,
            team_id=team_id,
            sections=sections,
        )

    def iter_questions(self) -> Iterator[Tuple[int, int, Question]]:
        for section_index, section in enumerate(self.sections):
            for question_index, question in enumerate(section.questions):
                yield section_index, question_index, question

    def get_question(self, question_id: str) -> Question:
        for _, _, question in self.iter_questions():
            if question.id == question_id:
                return question
        raise NotFoundError(f"Question {question_id} not found")

    def sections_to_list(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.sections]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "visibility": self.visibility.value,
            "team_id": self.team_id,
            "sections": self.sections_to_list(),
            "stats": self.stats.to_dict(),
            "revision": self.revision,
            "created_at": _dump_dt(self.created_at),
            "updated_at": _dump_dt(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            name=data.get("name", ""),
            visibility=Visibility(data.get("visibility") or Visibility.PERSONAL.value),
            team_id=data.get("team_id"),
            sections=[Section.from_dict(s) for s in data.get("sections", [])],
            stats=Stats.from_dict(data.get("stats")),
            revision=data.get("revision", 0),
            created_at=_load_dt(data.get("created_at")),
            updated_at=_load_dt(data.get("updated_at")),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Project):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Project(id={self.id}, name={self.name}, revision={self.revision})"
