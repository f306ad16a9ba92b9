"""Models package: import all models so metadata.create_all can discover them."""

from fieldforce.models.entity import Entity
from fieldforce.models.role import Role, Permission, RolePermission, SUPER_ADMIN_ROLE
from fieldforce.models.user import User

__all__ = [
    "Entity", "Role", "Permission", "RolePermission", "User", "SUPER_ADMIN_ROLE",
]
