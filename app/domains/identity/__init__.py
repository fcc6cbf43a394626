from app.domains.identity.entities import Actor, Role, MANAGER_ROLES

__all__ = [
    "Actor",
    "Role",
    "MANAGER_ROLES"
]
