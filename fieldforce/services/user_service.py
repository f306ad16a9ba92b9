"""User administration: create, update, manager changes, scoped listing."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from fieldforce.models.entity import Entity
from fieldforce.models.role import Role
from fieldforce.models.user import User
from fieldforce.core.config import Settings
from fieldforce.core.security import hash_password
from fieldforce.core.exceptions import BadRequestError, ConflictError, NotFoundError
from fieldforce.schemas.schemas import UserCreate, UserUpdate
from fieldforce.services.hierarchy_service import Visibility, UNRESTRICTED, apply_visibility

logger = logging.getLogger("fieldforce.users")


@dataclass(frozen=True)
class UserListFilter:
    search: Optional[str] = None
    role_name: Optional[str] = None
    is_active: Optional[bool] = None
    page: int = 1
    page_size: int = 20


class UserService:
    """Administrative operations on users. Holds no authorization logic."""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def create_user(self, data: UserCreate) -> User:
        if self.db.query(User).filter(User.email == data.email).first():
            raise ConflictError(f"User with email {data.email} already exists")
        if data.phone and self.db.query(User).filter(User.phone == data.phone).first():
            raise ConflictError(f"User with phone {data.phone} already exists")
        self._require(Role, data.role_id, "Role")
        if data.entity_id is not None:
            self._require(Entity, data.entity_id, "Entity")
        if data.reports_to_id is not None:
            self.get_user(data.reports_to_id)

        user = User(
            email=data.email,
            phone=data.phone,
            hashed_password=hash_password(data.password, rounds=self.settings.BCRYPT_ROUNDS),
            full_name=data.full_name,
            role_id=data.role_id,
            entity_id=data.entity_id,
            reports_to_id=data.reports_to_id,
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("Created user %s (%s)", user.id, user.email)
        return user

    def update_user(self, user_id: str, changes: UserUpdate) -> User:
        user = self.get_user(user_id)
        if changes.full_name:
            user.full_name = changes.full_name
        if changes.phone is not None:
            user.phone = changes.phone
        if changes.is_active is not None:
            user.is_active = changes.is_active
        if changes.role_id:
            self._require(Role, changes.role_id, "Role")
            user.role_id = changes.role_id
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_manager(self, user_id: str, manager_id: Optional[str]) -> User:
        """Point ``user_id`` at a new manager, or at nobody.

        Cycles are not rejected here; the hierarchy walk tolerates them.
        """
        user = self.get_user(user_id)
        if manager_id is not None:
            self.get_user(manager_id)
        user.reports_to_id = manager_id
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s now reports to %s", user_id, manager_id)
        return user

    def deactivate_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        user.is_active = False
        self.db.commit()
        self.db.refresh(user)
        logger.info("Deactivated user %s", user_id)
        return user

    def delete_user(self, user_id: str, acting_user_id: Optional[str] = None) -> None:
        """Remove a user for good.

        Their direct reports move up to the deleted user's own manager, so
        nobody drops out of the downline above them.
        """
        if user_id == acting_user_id:
            raise BadRequestError("You cannot delete your own account")
        user = self.get_user(user_id)
        new_manager_id = user.reports_to_id

        reports = self.db.query(User).filter(User.reports_to_id == user_id).all()
        for report in reports:
            # In a cycle the manager may be one of the reports
            report.reports_to_id = None if report.id == new_manager_id else new_manager_id
        self.db.flush()

        self.db.delete(user)
        self.db.commit()
        logger.info("Deleted user %s; %d reports moved to %s", user_id, len(reports), new_manager_id)

    def list_users(self, visible: Visibility = UNRESTRICTED, filters: UserListFilter = UserListFilter()):
        """List users, narrowed to ``visible`` and then to ``filters``."""
        query = apply_visibility(self.db.query(User), User.id, visible)
        if filters.role_name:
            query = query.join(Role, User.role_id == Role.id).filter(Role.name == filters.role_name)
        if filters.is_active is not None:
            query = query.filter(User.is_active == filters.is_active)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(User.full_name.ilike(pattern), User.email.ilike(pattern)))

        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.email)
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
            .all()
        )
        return {"users": users, "total": total, "page": filters.page}

    def _require(self, model, object_id: str, label: str) -> None:
        if not self.db.query(model).filter(model.id == object_id).first():
            raise NotFoundError(f"{label} {object_id} not found")
