from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.domains.collaboration.services import CollaborationService
from app.domains.projects.generation import AnswerGenerator


def get_answer_generator() -> AnswerGenerator:
    return AnswerGenerator()


async def get_collaboration_service(
    db: AsyncSession = Depends(get_db),
    generator: AnswerGenerator = Depends(get_answer_generator)
) -> CollaborationService:
    """Сервис совместной работы на время запроса"""
    return CollaborationService(db, generator=generator)
