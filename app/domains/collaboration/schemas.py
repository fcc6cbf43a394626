from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime

from app.domains.projects.entities import ReviewState
from app.domains.projects.schemas import ProjectResponse, QuestionResponse


class EditSessionResponse(BaseModel):
    """Открытое редактирование вопроса"""
    question_id: str
    content: Optional[str] = None
    locked_by: str
    expires_at: datetime


class LockStatusResponse(BaseModel):
    question_id: str
    locked: bool
    held_by: Optional[str] = None
    remaining_seconds: int = 0
    remaining: str = "0:00"


class SaveEditRequest(BaseModel):
    content: str = Field(..., max_length=100000)
    confirm_overwrite: bool = False


class RegenerateRequest(BaseModel):
    """Перегенерация ответа; без content ответ запрашивается у сервиса генерации"""
    content: Optional[str] = Field(None, max_length=100000)
    trust_score: Optional[int] = Field(None, ge=0, le=100)
    confirm_overwrite: bool = False


class RestoreVersionRequest(BaseModel):
    version_id: str


class StatusChangeRequest(BaseModel):
    target: ReviewState


class AssignmentItem(BaseModel):
    question_id: str
    editor_id: str


class AssignPreviewRequest(BaseModel):
    editor_ids: List[str] = Field(..., min_length=1)

    @field_validator('editor_ids')
    @classmethod
    def strip_editors(cls, v):
        return [e.strip() for e in v]


class AssignPreviewResponse(BaseModel):
    """Распределение вопросов до применения"""
    assignments: List[AssignmentItem]
    editor_ids: List[str]
    counts: Dict[str, int]
    base_count: int
    remainder: int
    extra_editors: List[str]
    total: int


class AssignCommitRequest(BaseModel):
    editor_ids: List[str] = Field(..., min_length=1)
    assignments: List[AssignmentItem]
    confirm_reassign: bool = False


class AssignCommitResponse(BaseModel):
    assigned: int
    project: ProjectResponse


class AssignQuestionRequest(BaseModel):
    editor_id: str = Field(..., min_length=1)
    confirm_reassign: bool = False


class QuestionMutationResponse(BaseModel):
    """Изменённый вопрос и новая ревизия проекта"""
    question: QuestionResponse
    revision: int
    progress: int


class PresenceHeartbeatRequest(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None


class TypingRequest(BaseModel):
    is_typing: bool
    question_id: Optional[str] = None


class PresenceEntryResponse(BaseModel):
    user_id: str
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    color: str
    is_typing: bool
    typing_question: Optional[str] = None
    last_seen: Optional[datetime] = None


class PresenceListResponse(BaseModel):
    project_id: str
    users: List[PresenceEntryResponse]


class WorkflowProgressResponse(BaseModel):
    total: int
    counts: Dict[str, int]
    percentages: Dict[str, int]
