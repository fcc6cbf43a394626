from sqlalchemy import Column, String, Text, Boolean

from app.db.base import BaseModel


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(String(128), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, default="")
    link = Column(String(512), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
