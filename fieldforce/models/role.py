"""Role, Permission, and RolePermission models for RBAC."""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from fieldforce.db.base import Base

# Exempt from explicit permission checks; enforced in code, never by mapping rows.
SUPER_ADMIN_ROLE = "SUPER_ADMIN"


def _uuid() -> str:
    return str(uuid.uuid4())


class Permission(Base):
    """Named capability such as ``expenses.approve``."""
    __tablename__ = "permissions"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role_permissions = relationship(
        "RolePermission",
        back_populates="permission",
        cascade="all, delete-orphan",
    )


class Role(Base):
    """Leveled bundle of permissions, global (entity_id NULL) or tenant-scoped."""
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", "entity_id", name="uq_roles_name_entity"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(50), nullable=False, index=True)
    level = Column(Integer, nullable=False, default=0)
    entity_id = Column(String(36), ForeignKey("entities.id"), nullable=True, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    entity = relationship("Entity", lazy="joined")
    role_permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def permission_names(self) -> list[str]:
        return sorted(rp.permission.name for rp in self.role_permissions)

    @property
    def is_super_admin(self) -> bool:
        return self.name == SUPER_ADMIN_ROLE


class RolePermission(Base):
    """Association between a role and one of its permissions."""
    __tablename__ = "role_permissions"

    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(
        String(36), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions", lazy="joined")
