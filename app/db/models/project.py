from sqlalchemy import Column, String, Integer, JSON, Index

from app.db.base import BaseModel


class Project(BaseModel):
    __tablename__ = "projects"

    owner_id = Column(String(128), nullable=False, index=True)
    team_id = Column(String(128), nullable=True)
    name = Column(String(255), nullable=False)
    visibility = Column(String(16), nullable=False, default="personal")
    # Разделы и вопросы хранятся целиком, как один документ
    sections = Column(JSON, nullable=False, default=list)
    stats = Column(JSON, nullable=False, default=dict)
    revision = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_projects_owner_uuid", "owner_id", "uuid"),
    )
