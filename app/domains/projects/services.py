import logging
from typing import List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Forbidden, NotFoundError
from app.db.repositories.project_repository import ProjectRepository
from app.domains.collaboration.document import CollaborativeDocument
from app.domains.identity.entities import Actor
from app.domains.projects.entities import Project, Question, Section
from app.domains.projects.export import export_project
from app.domains.projects.schemas import ProjectCreate

logger = logging.getLogger(__name__)


class ProjectService:
    """Сервис для работы с проектами"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.project_repository = ProjectRepository(session)

    async def create_project(self, project_data: ProjectCreate, actor: Actor) -> Project:
        """Создание проекта из загруженного опросника"""
        sections = [
            Section.create_section(
                name=section.name,
                questions=[Question.create_question(q.text, q.response) for q in section.questions]
            )
            for section in project_data.sections
        ]
        project = Project.create_project(
            owner_id=actor.uid,
            name=project_data.name,
            sections=sections,
            visibility=project_data.visibility,
            team_id=project_data.team_id or actor.team_id
        )
        CollaborativeDocument(project).recompute_stats()

        created = await self.project_repository.create(project)
        logger.info(f"Project {created.id} created by {actor.uid} with {created.stats.total_questions} questions")
        return created

    async def load_project(self, owner_id: str, project_id: str, actor: Actor) -> Project:
        """Загрузка проекта с проверкой доступа"""
        project = await self.project_repository.get(owner_id, project_id)
        if not project:
            raise NotFoundError(f"Project {project_id} not found")
        if not actor.can_access(project):
            raise Forbidden("You don't have access to this project")
        return project

    async def list_projects(self, actor: Actor, limit: int = 100, offset: int = 0) -> List[Project]:
        return await self.project_repository.list_for_owner(actor.uid, limit, offset)

    async def delete_project(self, owner_id: str, project_id: str, actor: Actor) -> None:
        """Удаление проекта целиком; только владелец"""
        project = await self.load_project(owner_id, project_id, actor)
        if actor.uid != project.owner_id:
            raise Forbidden("Only the owner can delete this project")

        if not await self.project_repository.delete(owner_id, project_id):
            raise NotFoundError(f"Project {project_id} not found")
        logger.info(f"Project {project_id} deleted by {actor.uid}")

    async def export(
        self,
        owner_id: str,
        project_id: str,
        actor: Actor,
        format_type: str,
        include_versions: bool = False
    ) -> Dict[str, Any]:
        """Экспорт проекта"""
        project = await self.load_project(owner_id, project_id, actor)
        return export_project(project, format_type, include_versions)
