"""Seed the default entity and the super-admin user from settings."""

from sqlalchemy.orm import Session
from fieldforce.models.entity import Entity
from fieldforce.models.user import User
from fieldforce.models.role import Role, SUPER_ADMIN_ROLE
from fieldforce.core.config import Settings
from fieldforce.core.security import hash_password


def seed_default_entity(db: Session, settings: Settings) -> Entity:
    """Create the default entity if it is missing."""
    entity = db.query(Entity).filter(Entity.code == settings.DEFAULT_ENTITY_CODE).first()
    if entity:
        return entity
    entity = Entity(name="Default Entity", code=settings.DEFAULT_ENTITY_CODE, is_active=True)
    db.add(entity)
    db.commit()
    db.refresh(entity)
    print(f"✅ Created entity: {entity.name}")
    return entity


def seed_super_admin(db: Session, settings: Settings) -> None:
    """Create the super-admin user if not already present."""
    super_admin_role = (
        db.query(Role)
        .filter(Role.name == SUPER_ADMIN_ROLE, Role.entity_id.is_(None))
        .first()
    )
    if not super_admin_role:
        print("⚠️  SUPER_ADMIN role not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(User.email == settings.SUPER_ADMIN_EMAIL).first()
    if existing:
        print(f"ℹ️  Super admin '{settings.SUPER_ADMIN_EMAIL}' already exists, skipping.")
        return

    entity = seed_default_entity(db, settings)
    admin = User(
        email=settings.SUPER_ADMIN_EMAIL,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD, rounds=settings.BCRYPT_ROUNDS),
        full_name="Super Admin",
        is_active=True,
        role_id=super_admin_role.id,
        entity_id=entity.id,
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created super admin: {settings.SUPER_ADMIN_EMAIL}")
