"""Per-request service construction from the app's composition root."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from fieldforce.db.session import get_db
from fieldforce.services.auth_service import AuthService
from fieldforce.services.entity_service import EntityService
from fieldforce.services.hierarchy_service import HierarchyResolver, SqlSubordinateLookup
from fieldforce.services.role_service import RoleStore
from fieldforce.services.user_service import UserService


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db, request.app.state.tokens, request.app.state.settings)


def get_role_store(db: Session = Depends(get_db)) -> RoleStore:
    return RoleStore(db)


def get_user_service(request: Request, db: Session = Depends(get_db)) -> UserService:
    return UserService(db, request.app.state.settings)


def get_hierarchy(db: Session = Depends(get_db)) -> HierarchyResolver:
    return HierarchyResolver(SqlSubordinateLookup(db))


def get_entity_service(db: Session = Depends(get_db)) -> EntityService:
    return EntityService(db)
