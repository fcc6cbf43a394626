from enum import Enum
from typing import Optional, Dict, Any

from app.domains.projects.entities import EditorRef, Project, Visibility


class Role(str, Enum):
    """Роль участника в проекте"""
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


# Роли с правом согласования и управления назначениями
MANAGER_ROLES = (Role.OWNER, Role.ADMIN)


class Actor:
    """Аутентифицированный участник, выполняющий действие"""

    def __init__(
        self,
        uid: str,
        email: str,
        display_name: Optional[str] = None,
        role: Role = Role.EDITOR,
        team_id: Optional[str] = None
    ):
        self.uid = uid
        self.email = email
        self.display_name = display_name or email
        self.role = role
        self.team_id = team_id

    def role_in(self, project: Project) -> Role:
        """Роль участника применительно к конкретному проекту"""
        if self.uid == project.owner_id:
            return Role.OWNER
        # Владелец только один; чужой проект с токеном owner даёт права admin
        if self.role == Role.OWNER:
            return Role.ADMIN
        return self.role

    def can_access(self, project: Project) -> bool:
        """Проверка доступа к проекту"""
        if self.uid == project.owner_id:
            return True
        if project.visibility == Visibility.TEAM:
            return bool(project.team_id) and self.team_id == project.team_id
        return False

    def as_editor(self) -> EditorRef:
        return EditorRef(uid=self.uid, name=self.display_name)

    @classmethod
    def from_claims(cls, payload: Dict[str, Any]) -> "Actor":
        """Создание участника из данных JWT токена"""
        return cls(
            uid=payload["sub"],
            email=payload.get("email", ""),
            display_name=payload.get("name"),
            role=Role(payload.get("role", Role.EDITOR.value)),
            team_id=payload.get("team_id"),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Actor):
            return False
        return self.uid == other.uid

    def __hash__(self) -> int:
        return hash(self.uid)

    def __repr__(self) -> str:
        return f"Actor(uid={self.uid}, email={self.email}, role={self.role.value})"
