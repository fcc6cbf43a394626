import uuid
import logging
from datetime import timezone
from typing import Optional, List, Dict, Any, TYPE_CHECKING

from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceFailure, RevisionConflict
from app.db.models.project import Project as ProjectModel
from app.domains.projects.entities import utcnow

if TYPE_CHECKING:
    from app.domains.projects.entities import Project

logger = logging.getLogger(__name__)

# Поля проекта, которые можно перезаписать через save
WRITABLE_FIELDS = ("name", "visibility", "team_id", "sections", "stats")


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _aware(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ProjectRepository:
    """Репозиторий проектов: документ хранится и пишется целиком"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, project: "Project") -> "Project":
        """Создание нового проекта"""
        db_project = ProjectModel(
            uuid=uuid.UUID(project.id),
            owner_id=project.owner_id,
            team_id=project.team_id,
            name=project.name,
            visibility=project.visibility.value,
            sections=project.sections_to_list(),
            stats=project.stats.to_dict(),
            revision=project.revision,
        )

        self.session.add(db_project)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceFailure("Failed to create project", original_error=e)

        await self.session.refresh(db_project)
        return self._to_domain(db_project)

    async def get(self, owner_id: str, project_id: str) -> Optional["Project"]:
        """Получение проекта по пути владельца"""
        project_uuid = _as_uuid(project_id)
        if project_uuid is None:
            return None

        try:
            result = await self.session.execute(
                select(ProjectModel).where(
                    ProjectModel.uuid == project_uuid,
                    ProjectModel.owner_id == owner_id
                ).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise PersistenceFailure("Failed to load project", original_error=e)

        db_project = result.scalar_one_or_none()
        return self._to_domain(db_project) if db_project else None

    async def list_for_owner(self, owner_id: str, limit: int = 100, offset: int = 0) -> List["Project"]:
        result = await self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.owner_id == owner_id)
            .order_by(ProjectModel.updated_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(p) for p in result.scalars().all()]

    async def save(
        self,
        owner_id: str,
        project_id: str,
        fields: Dict[str, Any],
        expected_revision: Optional[int] = None
    ) -> int:
        """Запись полей верхнего уровня; вложенные массивы передаются целиком.

        При переданной expected_revision запись выполняется только если
        ревизия в хранилище не изменилась. Возвращает новую ревизию.
        """
        unknown = set(fields) - set(WRITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown project fields: {sorted(unknown)}")

        conditions = [
            ProjectModel.uuid == uuid.UUID(project_id),
            ProjectModel.owner_id == owner_id,
        ]
        if expected_revision is not None:
            conditions.append(ProjectModel.revision == expected_revision)

        stmt = (
            update(ProjectModel)
            .where(*conditions)
            .values(**fields, revision=ProjectModel.revision + 1, updated_at=utcnow())
            .returning(ProjectModel.revision)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.session.execute(stmt)
            new_revision = result.scalar_one_or_none()
            if new_revision is None:
                await self.session.rollback()
                current = await self._current_revision(owner_id, project_id)
                if current is None:
                    raise PersistenceFailure(f"Project {project_id} no longer exists")
                raise RevisionConflict(expected_revision, current)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to save project {project_id}: {e}")
            raise PersistenceFailure("Failed to save project", original_error=e)

        return new_revision

    async def delete(self, owner_id: str, project_id: str) -> bool:
        """Удаление проекта целиком"""
        project_uuid = _as_uuid(project_id)
        if project_uuid is None:
            return False

        stmt = delete(ProjectModel).where(
            ProjectModel.uuid == project_uuid,
            ProjectModel.owner_id == owner_id
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceFailure("Failed to delete project", original_error=e)
        return result.rowcount > 0

    async def _current_revision(self, owner_id: str, project_id: str) -> Optional[int]:
        result = await self.session.execute(
            select(ProjectModel.revision).where(
                ProjectModel.uuid == uuid.UUID(project_id),
                ProjectModel.owner_id == owner_id
            )
        )
        return result.scalar_one_or_none()

    def _to_domain(self, db_project: ProjectModel) -> "Project":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.projects.entities import Project, Section, Stats, Visibility

        return Project(
            id=str(db_project.uuid),
            owner_id=db_project.owner_id,
            name=db_project.name,
            visibility=Visibility(db_project.visibility),
            team_id=db_project.team_id,
            sections=[Section.from_dict(s) for s in db_project.sections or []],
            stats=Stats.from_dict(db_project.stats),
            revision=db_project.revision,
            created_at=_aware(db_project.created_at),
            updated_at=_aware(db_project.updated_at)
        )
