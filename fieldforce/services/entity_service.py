"""Entity (tenant) administration: create, list, update, soft and hard delete."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from fieldforce.models.entity import Entity
from fieldforce.models.role import Role
from fieldforce.models.user import User
from fieldforce.schemas.schemas import EntityUpdate
from fieldforce.core.exceptions import ConflictError, NotFoundError

logger = logging.getLogger("fieldforce.entities")


@dataclass(frozen=True)
class EntityListFilter:
    search: Optional[str] = None
    # None lists every entity; the default hides soft-deleted ones
    is_active: Optional[bool] = True
    page: int = 1
    page_size: int = 20


class EntityService:

    def __init__(self, db: Session):
        self.db = db

    def get_entity(self, entity_id: str) -> Entity:
        entity = self.db.query(Entity).filter(Entity.id == entity_id).first()
        if not entity:
            raise NotFoundError(f"Entity {entity_id} not found")
        return entity

    def usage(self, entity_id: str) -> dict:
        """How many users and roles belong to the entity."""
        return {
            "user_count": self.db.query(User).filter(User.entity_id == entity_id).count(),
            "role_count": self.db.query(Role).filter(Role.entity_id == entity_id).count(),
        }

    def create_entity(self, name: str, code: str) -> Entity:
        self._check_code(code)
        entity = Entity(name=name, code=code, is_active=True)
        self.db.add(entity)
        self.db.commit()
        self.db.refresh(entity)
        logger.info("Created entity %s (%s)", entity.id, code)
        return entity

    def list_entities(self, filters: EntityListFilter = EntityListFilter()):
        query = self.db.query(Entity)
        if filters.is_active is not None:
            query = query.filter(Entity.is_active == filters.is_active)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(Entity.name.ilike(pattern), Entity.code.ilike(pattern)))

        total = query.count()
        entities = (
            query.order_by(Entity.created_at.desc(), Entity.code)
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
            .all()
        )
        return {"entities": entities, "total": total, "page": filters.page}

    def update_entity(self, entity_id: str, changes: EntityUpdate) -> Entity:
        entity = self.get_entity(entity_id)
        if changes.code and changes.code != entity.code:
            self._check_code(changes.code)
            entity.code = changes.code
        if changes.name:
            entity.name = changes.name
        if changes.is_active is not None:
            entity.is_active = changes.is_active
        self.db.commit()
        self.db.refresh(entity)
        logger.info("Updated entity %s", entity_id)
        return entity

    def deactivate_entity(self, entity_id: str) -> Entity:
        """Soft delete: the entity stays but drops out of default listings."""
        entity = self.get_entity(entity_id)
        entity.is_active = False
        self.db.commit()
        self.db.refresh(entity)
        logger.info("Deactivated entity %s", entity_id)
        return entity

    def delete_entity(self, entity_id: str) -> None:
        """Hard delete. Refused while users or roles still belong to the entity.

        Raises:
            ConflictError: the entity is still referenced.
        """
        entity = self.get_entity(entity_id)
        counts = self.usage(entity_id)
        if counts["user_count"] or counts["role_count"]:
            raise ConflictError(
                f"Cannot delete entity: {counts['user_count']} users and "
                f"{counts['role_count']} roles still belong to it."
            )
        self.db.delete(entity)
        self.db.commit()
        logger.info("Deleted entity %s (%s)", entity_id, entity.code)

    def _check_code(self, code: str) -> None:
        if self.db.query(Entity).filter(Entity.code == code).first():
            raise ConflictError(f"Entity with code '{code}' already exists")
