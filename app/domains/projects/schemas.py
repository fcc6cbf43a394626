from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Literal
from datetime import datetime

from app.domains.projects.entities import ChangeType, ProvenanceKind, ReviewState, Visibility


class QuestionCreate(BaseModel):
    """Вопрос при загрузке проекта"""
    text: str = Field(..., min_length=1, max_length=10000)
    response: Optional[str] = Field(None, max_length=100000)

    @field_validator('text')
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError('Question text cannot be empty')
        return v.strip()


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    questions: List[QuestionCreate] = Field(default_factory=list)


class ProjectCreate(BaseModel):
    """Схема для создания проекта"""
    name: str = Field(..., min_length=1, max_length=255)
    visibility: Visibility = Visibility.PERSONAL
    team_id: Optional[str] = None
    sections: List[SectionCreate] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class EditorRefResponse(BaseModel):
    uid: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class VersionResponse(BaseModel):
    """Снимок ответа из истории"""
    id: str
    content: str
    edited_at: datetime
    edited_by: Optional[EditorRefResponse] = None
    change_type: ChangeType
    trust_score: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class QuestionResponse(BaseModel):
    """Схема вопроса с состоянием процесса"""
    id: str
    text: str
    response: Optional[str] = None
    status: ProvenanceKind
    review_state: ReviewState
    display_stage: str
    trust_score: Optional[int] = None
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    last_edited_at: Optional[datetime] = None
    last_edited_by: Optional[EditorRefResponse] = None
    versions: List[VersionResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class SectionResponse(BaseModel):
    id: str
    name: str
    questions: List[QuestionResponse]

    model_config = ConfigDict(from_attributes=True)


class StatsResponse(BaseModel):
    total_questions: int
    answered: int
    in_review: int
    approved: int
    progress: int

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(BaseModel):
    """Схема проекта целиком"""
    id: str
    owner_id: str
    name: str
    visibility: Visibility
    team_id: Optional[str] = None
    sections: List[SectionResponse]
    stats: StatsResponse
    revision: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectSummaryResponse(BaseModel):
    id: str
    name: str
    visibility: Visibility
    stats: StatsResponse
    revision: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectExportRequest(BaseModel):
    format: Literal["txt", "md", "html"] = "md"
    include_versions: bool = False


class ProjectExportResponse(BaseModel):
    project_id: str
    format: str
    filename: str
    content: str
    exported_at: datetime


class GenerateMissingResponse(BaseModel):
    """Результат генерации ответов на вопросы без ответа"""
    generated: int
    fallback: int
    skipped: int = 0
    project: ProjectResponse
