"""User model."""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from fieldforce.db.base import Base
from fieldforce.models.role import _uuid


class User(Base):
    """Platform user with one role and an optional manager."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    role_id = Column(String(36), ForeignKey("roles.id"), nullable=False)
    entity_id = Column(String(36), ForeignKey("entities.id"), nullable=True)
    reports_to_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    role = relationship("Role", lazy="joined")
    entity = relationship("Entity", lazy="joined")
    manager = relationship("User", remote_side=[id], lazy="joined", join_depth=1)
