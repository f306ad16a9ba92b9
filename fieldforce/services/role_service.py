"""Role-permission store: roles, permissions, and their mapping."""

import logging
from dataclasses import dataclass
from typing import Optional, Iterable, List, FrozenSet

from sqlalchemy.orm import Session

from fieldforce.models.entity import Entity
from fieldforce.models.role import Role, Permission, RolePermission, SUPER_ADMIN_ROLE
from fieldforce.models.user import User
from fieldforce.schemas.schemas import RoleUpdate
from fieldforce.core.exceptions import ConflictError, NotFoundError, RoleInUseError

logger = logging.getLogger("fieldforce.roles")


@dataclass(frozen=True)
class RoleInfo:
    id: str
    name: str
    level: int
    entity_id: Optional[str]
    is_super_admin: bool


@dataclass(frozen=True)
class RoleListFilter:
    search: Optional[str] = None
    entity_id: Optional[str] = None
    page: int = 1
    page_size: int = 20


def is_super_admin(role_name: str) -> bool:
    return role_name == SUPER_ADMIN_ROLE


class RoleStore:
    """Reads and administers roles, permissions, and role→permission sets.

    Every mutation runs in a single transaction on the session it was given,
    so concurrent readers see either the old permission set or the new one.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---- reads ----

    def get_role(self, role_id: str) -> Role:
        role = self.db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise NotFoundError(f"Role {role_id} not found")
        return role

    def get_permission_names(self, role_id: str) -> FrozenSet[str]:
        """Names of every permission mapped to the role."""
        self.get_role(role_id)
        rows = (
            self.db.query(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id == role_id)
            .all()
        )
        return frozenset(name for (name,) in rows)

    def get_role_info(self, name: str, entity_id: Optional[str] = None) -> RoleInfo:
        """Level and bypass eligibility of a role, tenant-scoped first, then global."""
        role = None
        if entity_id is not None:
            role = self._find_role(name, entity_id)
        if role is None:
            role = self._find_role(name, None)
        if role is None:
            raise NotFoundError(f"Role '{name}' not found")
        return RoleInfo(
            id=role.id,
            name=role.name,
            level=role.level,
            entity_id=role.entity_id,
            is_super_admin=is_super_admin(role.name),
        )

    def list_roles(self, filters: RoleListFilter = RoleListFilter()):
        query = self.db.query(Role)
        if filters.search:
            query = query.filter(Role.name.ilike(f"%{filters.search}%"))
        if filters.entity_id:
            query = query.filter(Role.entity_id == filters.entity_id)

        total = query.count()
        roles = (
            query.order_by(Role.level.desc(), Role.name)
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
            .all()
        )
        return {"roles": roles, "total": total, "page": filters.page}

    def list_permissions(self) -> List[Permission]:
        return self.db.query(Permission).order_by(Permission.name).all()

    # ---- mutations ----

    def create_permission(self, name: str, description: Optional[str] = None) -> Permission:
        if self.db.query(Permission).filter(Permission.name == name).first():
            raise ConflictError(f"Permission '{name}' already exists")
        permission = Permission(name=name, description=description)
        self.db.add(permission)
        self.db.commit()
        self.db.refresh(permission)
        logger.info("Created permission %s", name)
        return permission

    def delete_permission(self, permission_id: str) -> None:
        """Delete a permission; its role mappings go with it."""
        permission = self.db.query(Permission).filter(Permission.id == permission_id).first()
        if not permission:
            raise NotFoundError(f"Permission {permission_id} not found")
        self.db.delete(permission)
        self.db.commit()
        logger.info("Deleted permission %s", permission.name)

    def create_role(
        self,
        name: str,
        level: int,
        entity_id: Optional[str] = None,
        permission_ids: Iterable[str] = (),
        description: Optional[str] = None,
    ) -> Role:
        self._check_entity(entity_id)
        if self._find_role(name, entity_id) is not None:
            raise ConflictError(f"Role '{name}' already exists in this scope")
        permissions = self._load_permissions(permission_ids)

        role = Role(name=name, level=level, entity_id=entity_id, description=description)
        role.role_permissions = [RolePermission(permission=p) for p in permissions]
        self.db.add(role)
        self._commit()
        self.db.refresh(role)
        logger.info("Created role %s (level %s, %d permissions)", name, level, len(permissions))
        return role

    def update_role(self, role_id: str, changes: RoleUpdate) -> Role:
        """Apply base-field changes and, if given, replace the permission set."""
        role = self.get_role(role_id)
        provided = changes.model_fields_set

        name = changes.name if "name" in provided and changes.name else role.name
        entity_id = changes.entity_id if "entity_id" in provided else role.entity_id
        if (name, entity_id) != (role.name, role.entity_id):
            self._check_entity(entity_id)
            existing = self._find_role(name, entity_id)
            if existing is not None and existing.id != role.id:
                raise ConflictError(f"Role '{name}' already exists in this scope")

        permissions = None
        if "permission_ids" in provided and changes.permission_ids is not None:
            permissions = self._load_permissions(changes.permission_ids)

        role.name = name
        role.entity_id = entity_id
        if "level" in provided and changes.level is not None:
            role.level = changes.level
        if "description" in provided:
            role.description = changes.description
        if permissions is not None:
            self._sync_permissions(role, permissions)

        self._commit()
        self.db.refresh(role)
        logger.info("Updated role %s", role.name)
        return role

    def replace_permissions(self, role_id: str, permission_ids: Iterable[str]) -> Role:
        """Swap the role's whole permission set for ``permission_ids``."""
        role = self.get_role(role_id)
        permissions = self._load_permissions(permission_ids)
        self._sync_permissions(role, permissions)
        self._commit()
        self.db.refresh(role)
        logger.info("Replaced permissions of role %s (%d now)", role.name, len(permissions))
        return role

    def delete_role(self, role_id: str) -> None:
        """Delete a role nobody holds.

        Raises:
            RoleInUseError: at least one user still references the role.
        """
        role = self.get_role(role_id)
        users_count = self.db.query(User).filter(User.role_id == role_id).count()
        if users_count > 0:
            raise RoleInUseError(
                f"Cannot delete role: {users_count} users are currently assigned to this role."
            )
        self.db.delete(role)
        self._commit()
        logger.info("Deleted role %s", role.name)

    # ---- helpers ----

    def _find_role(self, name: str, entity_id: Optional[str]) -> Optional[Role]:
        query = self.db.query(Role).filter(Role.name == name)
        if entity_id is None:
            query = query.filter(Role.entity_id.is_(None))
        else:
            query = query.filter(Role.entity_id == entity_id)
        return query.first()

    def _check_entity(self, entity_id: Optional[str]) -> None:
        if entity_id is None:
            return
        if not self.db.query(Entity).filter(Entity.id == entity_id).first():
            raise NotFoundError(f"Entity {entity_id} not found")

    def _load_permissions(self, permission_ids: Iterable[str]) -> List[Permission]:
        wanted = set(permission_ids)
        if not wanted:
            return []
        permissions = self.db.query(Permission).filter(Permission.id.in_(wanted)).all()
        missing = wanted - {p.id for p in permissions}
        if missing:
            raise NotFoundError(f"Permissions not found: {', '.join(sorted(missing))}")
        return permissions

    @staticmethod
    def _sync_permissions(role: Role, permissions: List[Permission]) -> None:
        desired = {p.id: p for p in permissions}
        for rp in list(role.role_permissions):
            if rp.permission_id not in desired:
                role.role_permissions.remove(rp)
        current = {rp.permission_id for rp in role.role_permissions}
        for permission_id, permission in desired.items():
            if permission_id not in current:
                role.role_permissions.append(RolePermission(permission=permission))

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
