from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.api.deps import get_collaboration_service
from app.core.auth import get_current_actor
from app.core.db import get_db
from app.core.exceptions import Forbidden
from app.domains.collaboration.schemas import WorkflowProgressResponse
from app.domains.collaboration.services import CollaborationService
from app.domains.identity.entities import Actor
from app.domains.projects.schemas import (
    ProjectCreate, ProjectResponse, ProjectSummaryResponse,
    ProjectExportRequest, ProjectExportResponse, GenerateMissingResponse
)
from app.domains.projects.services import ProjectService

router = APIRouter(prefix="/users/{owner_id}/projects", tags=["projects"])


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    owner_id: str,
    project_data: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Создание проекта из опросника"""
    if owner_id != actor.uid:
        raise Forbidden("Projects can only be created under your own account")

    project = await ProjectService(db).create_project(project_data, actor)
    return ProjectResponse.model_validate(project)


@router.get("/", response_model=List[ProjectSummaryResponse])
async def list_projects(
    owner_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Список проектов владельца"""
    if owner_id != actor.uid:
        raise Forbidden("You can only list your own projects")

    projects = await ProjectService(db).list_projects(actor, limit=per_page, offset=(page - 1) * per_page)
    return [ProjectSummaryResponse.model_validate(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    owner_id: str,
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Получение проекта"""
    project = await ProjectService(db).load_project(owner_id, project_id, actor)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    owner_id: str,
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Удаление проекта"""
    await ProjectService(db).delete_project(owner_id, project_id, actor)


@router.post("/{project_id}/export", response_model=ProjectExportResponse)
async def export_project(
    owner_id: str,
    project_id: str,
    export_request: ProjectExportRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Экспорт проекта"""
    export_data = await ProjectService(db).export(
        owner_id, project_id, actor,
        export_request.format,
        export_request.include_versions
    )
    return ProjectExportResponse(**export_data)


@router.post("/{project_id}/generate-missing", response_model=GenerateMissingResponse)
async def generate_missing_answers(
    owner_id: str,
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Генерация ответов на вопросы без ответа"""
    project, generated, fallback, skipped = await service.generate_missing(owner_id, project_id, actor)
    return GenerateMissingResponse(
        generated=generated,
        fallback=fallback,
        skipped=skipped,
        project=ProjectResponse.model_validate(project)
    )


@router.get("/{project_id}/progress", response_model=WorkflowProgressResponse)
async def get_workflow_progress(
    owner_id: str,
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Распределение вопросов по стадиям согласования"""
    return WorkflowProgressResponse(**await service.workflow_progress(owner_id, project_id, actor))
