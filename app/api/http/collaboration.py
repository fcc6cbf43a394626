from fastapi import APIRouter, Depends, status
from typing import List

from app.api.deps import get_collaboration_service
from app.core.auth import get_current_actor
from app.domains.collaboration.assignment import Assignment, AssignmentPreview
from app.domains.collaboration.schemas import (
    EditSessionResponse, LockStatusResponse, SaveEditRequest, RegenerateRequest,
    RestoreVersionRequest, StatusChangeRequest, AssignPreviewRequest,
    AssignPreviewResponse, AssignCommitRequest, AssignCommitResponse,
    AssignQuestionRequest, QuestionMutationResponse, PresenceHeartbeatRequest,
    TypingRequest, PresenceEntryResponse, PresenceListResponse
)
from app.domains.collaboration.services import CollaborationService
from app.domains.identity.entities import Actor
from app.domains.projects.entities import Project, Question
from app.domains.projects.schemas import ProjectResponse, QuestionResponse, VersionResponse

router = APIRouter(prefix="/users/{owner_id}/projects/{project_id}", tags=["collaboration"])


def _mutation_response(question: Question, project: Project) -> QuestionMutationResponse:
    return QuestionMutationResponse(
        question=QuestionResponse.model_validate(question),
        revision=project.revision,
        progress=project.stats.progress
    )


# Блокировки и правки

@router.post("/questions/{question_id}/lock", response_model=EditSessionResponse)
async def start_edit(
    owner_id: str,
    project_id: str,
    question_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Начало редактирования вопроса"""
    session = await service.start_edit(owner_id, project_id, question_id, actor)
    return EditSessionResponse(
        question_id=session.question_id,
        content=session.content,
        locked_by=session.locked_by,
        expires_at=session.expires_at
    )


@router.delete("/questions/{question_id}/lock", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_edit(
    owner_id: str,
    project_id: str,
    question_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Отмена редактирования"""
    await service.cancel_edit(owner_id, project_id, question_id, actor)


@router.get("/questions/{question_id}/lock", response_model=LockStatusResponse)
async def get_lock_status(
    owner_id: str,
    project_id: str,
    question_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Состояние блокировки вопроса"""
    result = await service.lock_status(owner_id, project_id, question_id, actor)
    return LockStatusResponse(
        question_id=question_id,
        locked=not result.granted,
        held_by=result.held_by,
        remaining_seconds=result.remaining_seconds,
        remaining=result.format_remaining()
    )


@router.put("/questions/{question_id}/response", response_model=QuestionMutationResponse)
async def save_edit(
    owner_id: str,
    project_id: str,
    question_id: str,
    edit: SaveEditRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Сохранение ответа"""
    question, project = await service.save_edit(
        owner_id, project_id, question_id, edit.content, actor, edit.confirm_overwrite
    )
    return _mutation_response(question, project)


@router.post("/questions/{question_id}/regenerate", response_model=QuestionMutationResponse)
async def regenerate_answer(
    owner_id: str,
    project_id: str,
    question_id: str,
    request: RegenerateRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Перегенерация ответа"""
    question, project = await service.regenerate(
        owner_id, project_id, question_id, actor,
        content=request.content,
        trust_score=request.trust_score,
        confirm_overwrite=request.confirm_overwrite
    )
    return _mutation_response(question, project)


@router.get("/questions/{question_id}/versions", response_model=List[VersionResponse])
async def get_versions(
    owner_id: str,
    project_id: str,
    question_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """История ответа, новые версии сначала"""
    project = await service.project_service.load_project(owner_id, project_id, actor)
    question = project.get_question(question_id)
    return [VersionResponse.model_validate(v) for v in reversed(question.versions)]


@router.post("/questions/{question_id}/restore", response_model=QuestionMutationResponse)
async def restore_version(
    owner_id: str,
    project_id: str,
    question_id: str,
    request: RestoreVersionRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Восстановление ответа из версии"""
    question, project = await service.restore_version(
        owner_id, project_id, question_id, request.version_id, actor
    )
    return _mutation_response(question, project)


# Согласование

@router.post("/questions/{question_id}/status", response_model=QuestionMutationResponse)
async def change_status(
    owner_id: str,
    project_id: str,
    question_id: str,
    request: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Смена состояния согласования"""
    question, project = await service.change_status(owner_id, project_id, question_id, request.target, actor)
    return _mutation_response(question, project)


# Назначения

@router.post("/assignments/preview", response_model=AssignPreviewResponse)
async def preview_assignment(
    owner_id: str,
    project_id: str,
    request: AssignPreviewRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Предпросмотр распределения вопросов"""
    preview = await service.preview_assignment(owner_id, project_id, request.editor_ids, actor)
    return AssignPreviewResponse(**preview.to_dict())


@router.post("/assignments", response_model=AssignCommitResponse)
async def commit_assignment(
    owner_id: str,
    project_id: str,
    request: AssignCommitRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Применение распределения"""
    preview = AssignmentPreview(
        assignments=[Assignment(question_id=a.question_id, editor_id=a.editor_id) for a in request.assignments],
        editor_ids=request.editor_ids
    )
    assignments, project = await service.commit_assignment(
        owner_id, project_id, preview, actor, request.confirm_reassign
    )
    return AssignCommitResponse(assigned=len(assignments), project=ProjectResponse.model_validate(project))


@router.put("/questions/{question_id}/assignee", response_model=QuestionMutationResponse)
async def assign_question(
    owner_id: str,
    project_id: str,
    question_id: str,
    request: AssignQuestionRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Назначение вопроса редактору"""
    question, project = await service.assign_question(
        owner_id, project_id, question_id, request.editor_id, actor, request.confirm_reassign
    )
    return _mutation_response(question, project)


@router.delete("/questions/{question_id}/assignee", response_model=QuestionMutationResponse)
async def unassign_question(
    owner_id: str,
    project_id: str,
    question_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Снятие назначения"""
    question, project = await service.unassign_question(owner_id, project_id, question_id, actor)
    return _mutation_response(question, project)


# Присутствие

@router.post("/presence/heartbeat", response_model=PresenceEntryResponse)
async def presence_heartbeat(
    owner_id: str,
    project_id: str,
    request: PresenceHeartbeatRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Отметка присутствия"""
    entry = await service.heartbeat(owner_id, project_id, actor, request.model_dump(exclude_none=True))
    return PresenceEntryResponse(**entry.to_dict())


@router.post("/presence/typing", response_model=PresenceEntryResponse)
async def presence_typing(
    owner_id: str,
    project_id: str,
    request: TypingRequest,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    entry = await service.set_typing(owner_id, project_id, actor, request.is_typing, request.question_id)
    return PresenceEntryResponse(**entry.to_dict())


@router.get("/presence", response_model=PresenceListResponse)
async def get_presence(
    owner_id: str,
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Другие активные участники проекта"""
    users = await service.active_users(owner_id, project_id, actor)
    return PresenceListResponse(
        project_id=project_id,
        users=[PresenceEntryResponse(**u) for u in users]
    )
